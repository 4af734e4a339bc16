"""Settings file loading and merging with command-line options."""

from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass
from importlib import resources
from pathlib import Path
from typing import Any

import yaml
from jsonschema import ValidationError, validators

from serialterm.core.errors import SettingsError
from serialterm.core.model import (
    DEFAULT_BAUD_RATE,
    DEFAULT_READ_TIMEOUT_S,
    DEFAULT_SETTLE_S,
    DEFAULT_WAIT_INTERVAL_S,
    DEFAULT_WAIT_TIMEOUT_S,
    SessionConfig,
)

SETTINGS_FILENAME = "settings.yaml"
LOGGER = logging.getLogger(__name__)


class UniqueKeyLoader(yaml.SafeLoader):
    """YAML loader that rejects duplicate mapping keys."""


UniqueKeyLoader.yaml_implicit_resolvers = {
    key: list(value) for key, value in yaml.SafeLoader.yaml_implicit_resolvers.items()
}

# Keep yes/no/on/off as plain strings; booleans are normalized explicitly.
for first_char, mappings in list(UniqueKeyLoader.yaml_implicit_resolvers.items()):
    UniqueKeyLoader.yaml_implicit_resolvers[first_char] = [
        (tag, regexp)
        for tag, regexp in mappings
        if tag != "tag:yaml.org,2002:bool"
    ]


def _construct_mapping(loader: UniqueKeyLoader, node: yaml.Node, deep: bool = False) -> dict[str, Any]:
    mapping: dict[str, Any] = {}
    for key_node, value_node in node.value:
        key = loader.construct_object(key_node, deep=deep)
        if key in mapping:
            raise SettingsError(f"Duplicate key '{key}' in YAML document")
        mapping[key] = loader.construct_object(value_node, deep=deep)
    return mapping


UniqueKeyLoader.add_constructor(
    yaml.resolver.BaseResolver.DEFAULT_MAPPING_TAG,
    _construct_mapping,
)


@dataclass(frozen=True)
class Settings:
    """Defaults applied underneath command-line options."""

    baud_rate: int = DEFAULT_BAUD_RATE
    wait_for_device: bool = False
    read_timeout_s: float = DEFAULT_READ_TIMEOUT_S
    wait_interval_s: float = DEFAULT_WAIT_INTERVAL_S
    wait_timeout_s: float = DEFAULT_WAIT_TIMEOUT_S
    settle_s: float = DEFAULT_SETTLE_S
    source: Path | None = None


def _load_schema_validator() -> Any:
    schema_text = resources.files("serialterm.schemas").joinpath("settings.schema.json").read_text(
        encoding="utf-8"
    )
    schema = json.loads(schema_text)
    validator_cls = validators.validator_for(schema)
    validator_cls.check_schema(schema)
    return validator_cls(schema)


def default_settings_path() -> Path:
    xdg_config = Path(os.environ.get("XDG_CONFIG_HOME", Path.home() / ".config"))
    return xdg_config / "serialterm" / SETTINGS_FILENAME


def _read_yaml(path: Path) -> dict[str, Any]:
    try:
        content = path.read_text(encoding="utf-8")
    except OSError as exc:
        raise SettingsError(f"Could not read settings file {path}: {exc}") from exc

    try:
        loaded = yaml.load(content, Loader=UniqueKeyLoader)
    except yaml.YAMLError as exc:
        raise SettingsError(f"Invalid YAML in {path}: {exc}") from exc

    if loaded is None:
        return {}
    if not isinstance(loaded, dict):
        raise SettingsError(f"Settings file {path} must contain a mapping at root")
    return loaded


def _normalize_bool(value: Any, *, context: str) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        lowered = value.strip().lower()
        if lowered == "true":
            return True
        if lowered == "false":
            return False
    raise SettingsError(f"{context} must be boolean true/false")


def _build_settings(doc: dict[str, Any], source: Path) -> Settings:
    validator = _load_schema_validator()
    try:
        validator.validate(doc)
    except ValidationError as exc:
        path = ".".join(str(p) for p in exc.path)
        where = f" ({path})" if path else ""
        raise SettingsError(f"Schema validation failed for {source}{where}: {exc.message}") from exc

    defaults = Settings()
    return Settings(
        baud_rate=int(doc.get("baud", defaults.baud_rate)),
        wait_for_device=_normalize_bool(doc.get("wait", defaults.wait_for_device), context=f"{source}: wait"),
        read_timeout_s=doc["read_timeout_ms"] / 1000 if "read_timeout_ms" in doc else defaults.read_timeout_s,
        wait_interval_s=doc["wait_interval_ms"] / 1000 if "wait_interval_ms" in doc else defaults.wait_interval_s,
        wait_timeout_s=float(doc.get("wait_timeout_s", defaults.wait_timeout_s)),
        settle_s=doc["settle_ms"] / 1000 if "settle_ms" in doc else defaults.settle_s,
        source=source,
    )


def load_settings(path: Path | None = None) -> Settings:
    """Load settings from `path`, or from the default location when it exists.

    An explicitly requested file must exist. The default file is optional and
    built-in defaults apply without it.
    """
    if path is None:
        path = default_settings_path()
        if not path.is_file():
            return Settings()
    settings = _build_settings(_read_yaml(path), path)
    LOGGER.debug("Loaded settings from %s", path)
    return settings


def build_session_config(
    settings: Settings,
    port_path: str,
    *,
    baud_rate: int | None = None,
    wait_for_device: bool = False,
    input_file: Path | None = None,
) -> SessionConfig:
    return SessionConfig(
        port_path=port_path,
        baud_rate=baud_rate if baud_rate is not None else settings.baud_rate,
        wait_for_device=wait_for_device or settings.wait_for_device,
        input_file=input_file,
        read_timeout_s=settings.read_timeout_s,
        wait_interval_s=settings.wait_interval_s,
        wait_timeout_s=settings.wait_timeout_s,
        settle_s=settings.settle_s,
    )
