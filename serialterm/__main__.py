from serialterm.cli import run

run()
