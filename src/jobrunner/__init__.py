"""jobrunner: run a program, and only tell anyone about it when it matters."""

__version__ = "1.0.0"
