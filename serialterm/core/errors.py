"""Domain-specific errors for serialterm."""


class SerialtermError(Exception):
    """Base error for serialterm."""


class SettingsError(SerialtermError):
    """Raised when the settings file cannot be read or fails validation."""


class OpenError(SerialtermError):
    """Base error for failures to acquire the serial device."""


class DeviceAbsentError(OpenError):
    """Raised when the device is not currently present on the system."""


class FatalOpenError(OpenError):
    """Raised on open failures that retrying will not fix (permission, busy, bad parameters)."""


class RetryExhaustedError(OpenError):
    """Raised when the wait window elapses without the device appearing."""


class RelayError(SerialtermError):
    """Base error for failures during an active session."""


class InputFileError(RelayError):
    """Raised when the file to send cannot be read."""


class RelayReadError(RelayError):
    """Raised on a non-timeout read failure from the device."""


class RelayWriteError(RelayError):
    """Raised when writing to the device or the output stream fails."""
