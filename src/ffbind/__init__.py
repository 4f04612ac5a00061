"""ffbind: builds FFmpeg from vendored sources and generates its binding."""

__version__ = "0.1.0"
