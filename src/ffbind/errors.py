"""Error hierarchy for ffbind.

Every stage raises a subclass of FFBindError; only the CLI turns one into
a process exit.
"""


class FFBindError(Exception):
    """Base class for all build orchestration failures."""

    pass


class BuildFilesystemError(FFBindError):
    """Raised when a required path is missing or cannot be written."""

    def __init__(self, message: str, path=None):
        super().__init__(message)
        self.path = path
