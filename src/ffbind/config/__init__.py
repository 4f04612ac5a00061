"""Configuration loading for ffbind."""

from .build_config import (
    BuildConfiguration,
    ConfigurationError,
    ConfigurationLoader,
    LinkMode,
    TargetTriple,
)
from .environment import ChildProcessEnvironment
from .ini_parser import FFBindIniConfig

__all__ = [
    "BuildConfiguration",
    "ConfigurationError",
    "ConfigurationLoader",
    "LinkMode",
    "TargetTriple",
    "ChildProcessEnvironment",
    "FFBindIniConfig",
]
