"""
ffbind.ini defaults parser.

A project may keep default build inputs in an ``ffbind.ini`` file next to
its vendored sources so that ``ffbind build`` works without exporting a long
list of environment variables. Values found in the process environment
always take precedence over the file.

Example ffbind.ini:
    [ffbind]
    ffmpeg_configuration = --enable-libx264 --enable-encoder=libx264
    ffmpeg_link_mode = static
    num_jobs = 8
"""

import configparser
from pathlib import Path
from typing import Dict

from .build_config import ConfigurationError


class FFBindIniConfig:
    """
    Parser for ffbind.ini files.

    Keys are matched case-insensitively and returned upper-cased so that
    they line up with the environment variable names the loader reads.
    """

    SECTION = "ffbind"

    def __init__(self, ini_path: Path):
        """
        Initialize the parser with an ffbind.ini file.

        Args:
            ini_path: Path to the ffbind.ini file

        Raises:
            ConfigurationError: If the file exists but cannot be parsed
        """
        self.ini_path = ini_path
        self.config = configparser.ConfigParser(
            allow_no_value=True, interpolation=configparser.ExtendedInterpolation()
        )

        if not ini_path.exists():
            return

        try:
            self.config.read(ini_path, encoding="utf-8")
        except configparser.Error as e:
            raise ConfigurationError(
                f"Failed to parse {ini_path}: {e}", name=str(ini_path)
            ) from e

    def exists(self) -> bool:
        """True when the file was present on disk."""
        return self.ini_path.exists()

    def get_defaults(self) -> Dict[str, str]:
        """
        Get default build inputs from the [ffbind] section.

        Returns:
            Mapping of upper-cased variable name to value. Empty when the file
            or the section is missing.
        """
        if self.SECTION not in self.config:
            return {}

        defaults = {}
        for key in self.config[self.SECTION]:
            value = self.config[self.SECTION][key]
            # allow_no_value keys carry None; treat them as empty strings
            defaults[key.upper()] = (value or "").strip()
        return defaults
