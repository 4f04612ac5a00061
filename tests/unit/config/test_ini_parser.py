"""
Unit tests for the ffbind.ini parser.
"""

import pytest

from ffbind.config import ConfigurationError, ConfigurationLoader
from ffbind.config.ini_parser import FFBindIniConfig


class TestFFBindIniConfig:
    """Test suite for FFBindIniConfig."""

    @pytest.fixture
    def tmp_ini_path(self, tmp_path):
        """Fixture to provide a temporary INI file path."""
        return tmp_path / "ffbind.ini"

    def test_missing_file(self, tmp_ini_path):
        """Test that a missing file yields no defaults."""
        config = FFBindIniConfig(tmp_ini_path)

        assert not config.exists()
        assert config.get_defaults() == {}

    def test_defaults_upper_cased(self, tmp_ini_path):
        tmp_ini_path.write_text(
            "[ffbind]\n"
            "ffmpeg_configuration = --enable-libx264 --enable-encoder=libx264\n"
            "FFMPEG_LINK_MODE = static\n"
            "num_jobs = 8\n"
        )
        defaults = FFBindIniConfig(tmp_ini_path).get_defaults()

        assert defaults == {
            "FFMPEG_CONFIGURATION": "--enable-libx264 --enable-encoder=libx264",
            "FFMPEG_LINK_MODE": "static",
            "NUM_JOBS": "8",
        }

    def test_missing_section(self, tmp_ini_path):
        tmp_ini_path.write_text("[other]\nnum_jobs = 8\n")

        assert FFBindIniConfig(tmp_ini_path).get_defaults() == {}

    def test_key_without_value(self, tmp_ini_path):
        tmp_ini_path.write_text("[ffbind]\nffmpeg_configuration\n")

        assert FFBindIniConfig(tmp_ini_path).get_defaults() == {"FFMPEG_CONFIGURATION": ""}

    def test_interpolation(self, tmp_ini_path):
        tmp_ini_path.write_text(
            "[ffbind]\n"
            "root = /opt/ffmpeg\n"
            "ffmpeg_libs_dir = ${root}/lib\n"
        )

        assert FFBindIniConfig(tmp_ini_path).get_defaults()["FFMPEG_LIBS_DIR"] == "/opt/ffmpeg/lib"

    def test_malformed_file(self, tmp_ini_path):
        """Test that a broken file is a configuration error."""
        tmp_ini_path.write_text("num_jobs = 8\n")

        with pytest.raises(ConfigurationError) as exc_info:
            FFBindIniConfig(tmp_ini_path)

        assert exc_info.value.name == str(tmp_ini_path)

    def test_feeds_configuration_loader(self, tmp_ini_path):
        tmp_ini_path.write_text("[ffbind]\nffmpeg_configuration = --enable-libdav1d\n")
        defaults = FFBindIniConfig(tmp_ini_path).get_defaults()

        config = ConfigurationLoader(
            {"TARGET": "x86_64-unknown-linux-gnu", "OUT_DIR": "/tmp/out", "NUM_JOBS": "1"},
            defaults=defaults,
        ).load()

        assert config.ffmpeg_configuration == ("--enable-libdav1d",)
