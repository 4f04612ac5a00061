"""
Unit tests for build configuration loading.
"""

from pathlib import Path

import pytest

from ffbind.build.directives import DirectiveSink
from ffbind.config.build_config import (
    BuildConfiguration,
    ConfigurationError,
    ConfigurationLoader,
    LinkMode,
    TargetTriple,
    parse_bool,
    remove_verbatim,
)


def make_inputs(**overrides):
    inputs = {
        "TARGET": "x86_64-unknown-linux-gnu",
        "OUT_DIR": "/tmp/out",
        "NUM_JOBS": "4",
        "FFMPEG_CONFIGURATION": "--enable-libx264  --enable-encoder=libx264",
    }
    inputs.update(overrides)
    return {k: v for k, v in inputs.items() if v is not None}


class TestLinkMode:
    """Test suite for LinkMode parsing and rendering."""

    def test_parse_valid_values(self):
        """Test that both accepted spellings parse."""
        assert LinkMode.parse("static") is LinkMode.STATIC
        assert LinkMode.parse("dynamic") is LinkMode.DYNAMIC

    def test_parse_invalid_value(self):
        """Test that any other text is a configuration error naming the variable."""
        with pytest.raises(ConfigurationError) as exc_info:
            LinkMode.parse("shared")

        assert exc_info.value.name == "FFMPEG_LINK_MODE"
        assert "'shared'" in str(exc_info.value)
        assert "expected [static,dynamic]" in str(exc_info.value)

    def test_parse_is_case_sensitive(self):
        """Test that link mode values are matched exactly."""
        with pytest.raises(ConfigurationError):
            LinkMode.parse("Static")

    def test_render(self):
        """Test the directive keyword of each mode."""
        assert str(LinkMode.STATIC) == "static"
        assert str(LinkMode.DYNAMIC) == "dylib"

    def test_is_static(self):
        assert LinkMode.STATIC.is_static
        assert not LinkMode.DYNAMIC.is_static


class TestTargetTriple:
    """Test suite for TargetTriple parsing."""

    def test_parse_four_part_triple(self):
        target = TargetTriple.parse("aarch64-unknown-linux-gnu")

        assert target.arch == "aarch64"
        assert target.vendor == "unknown"
        assert target.os == "linux"
        assert target.env == "gnu"

    def test_parse_three_part_triple(self):
        target = TargetTriple.parse("aarch64-apple-darwin")

        assert target.os == "macos"
        assert target.env is None

    def test_parse_invalid_triple(self):
        """Test that a triple with fewer than three parts is rejected."""
        with pytest.raises(ConfigurationError) as exc_info:
            TargetTriple.parse("x86_64")

        assert exc_info.value.name == "TARGET"

    def test_sanitized(self):
        """Test the form used in CMAKE_TOOLCHAIN_FILE_<triple>."""
        target = TargetTriple.parse("aarch64-unknown-linux-gnu")

        assert target.sanitized == "aarch64_unknown_linux_gnu"

    def test_is_windows(self):
        assert TargetTriple.parse("x86_64-pc-windows-msvc").is_windows
        assert not TargetTriple.parse("x86_64-unknown-linux-gnu").is_windows


class TestHelpers:
    """Test suite for parsing helpers."""

    @pytest.mark.parametrize("value,expected", [
        ("true", True),
        (" true\n", True),
        ("false", False),
        ("TRUE", False),
        ("yes", False),
        ("", False),
        (None, False),
    ])
    def test_parse_bool(self, value, expected):
        """Test that only 'true' after trimming enables a toggle."""
        assert parse_bool(value) is expected

    def test_remove_verbatim_prefix(self):
        assert remove_verbatim("\\\\?\\C:\\build\\out") == Path("C:\\build\\out")

    def test_remove_verbatim_plain_path(self):
        assert remove_verbatim("/tmp/out") == Path("/tmp/out")


class TestConfigurationLoader:
    """Test suite for ConfigurationLoader."""

    def test_load_minimal(self):
        """Test loading only the required inputs."""
        config = ConfigurationLoader(make_inputs()).load()

        assert isinstance(config, BuildConfiguration)
        assert config.target.triple == "x86_64-unknown-linux-gnu"
        assert config.out_dir == Path("/tmp/out")
        assert config.num_jobs == 4
        assert config.link_mode is None
        assert config.rockchip_mpp is False
        assert config.cross_toolchain_prefix is None
        assert config.vendor_dir == Path("vendor")
        assert config.pkg_config_var == "PKG_CONFIG_PATH"
        assert not config.is_cross

    def test_configure_flags_split_on_spaces(self):
        """Test that empty tokens from repeated spaces are dropped."""
        config = ConfigurationLoader(make_inputs()).load()

        assert config.ffmpeg_configuration == ("--enable-libx264", "--enable-encoder=libx264")

    def test_empty_configure_flags(self):
        config = ConfigurationLoader(make_inputs(FFMPEG_CONFIGURATION="")).load()

        assert config.ffmpeg_configuration == ()

    @pytest.mark.parametrize("name", ["TARGET", "OUT_DIR", "NUM_JOBS", "FFMPEG_CONFIGURATION"])
    def test_missing_required_input(self, name):
        """Test that every required input is enforced and named in the error."""
        inputs = make_inputs()
        del inputs[name]

        with pytest.raises(ConfigurationError) as exc_info:
            ConfigurationLoader(inputs).load()

        assert exc_info.value.name == name
        assert str(exc_info.value) == f"{name} env var is required but not set"

    @pytest.mark.parametrize("jobs", ["zero", "0", "-2", "1.5"])
    def test_invalid_num_jobs(self, jobs):
        with pytest.raises(ConfigurationError) as exc_info:
            ConfigurationLoader(make_inputs(NUM_JOBS=jobs)).load()

        assert exc_info.value.name == "NUM_JOBS"

    def test_link_mode(self):
        config = ConfigurationLoader(make_inputs(FFMPEG_LINK_MODE="static")).load()

        assert config.link_mode is LinkMode.STATIC

    def test_invalid_link_mode(self):
        with pytest.raises(ConfigurationError):
            ConfigurationLoader(make_inputs(FFMPEG_LINK_MODE="both")).load()

    def test_rockchip_mpp_toggle(self):
        assert ConfigurationLoader(make_inputs(FFMPEG_ROCKCHIP_MPP=" true ")).load().rockchip_mpp
        assert not ConfigurationLoader(make_inputs(FFMPEG_ROCKCHIP_MPP="1")).load().rockchip_mpp

    def test_out_dir_verbatim_prefix_stripped(self):
        config = ConfigurationLoader(make_inputs(OUT_DIR="\\\\?\\D:\\out")).load()

        assert config.out_dir == Path("D:\\out")

    def test_cmake_toolchain_file_for_target(self):
        """Test that the toolchain variable name is derived from the triple."""
        inputs = make_inputs(
            TARGET="aarch64-unknown-linux-gnu",
            CMAKE_TOOLCHAIN_FILE_aarch64_unknown_linux_gnu="/opt/aarch64.cmake",
            CMAKE_TOOLCHAIN_FILE_x86_64_unknown_linux_gnu="/opt/host.cmake",
        )
        config = ConfigurationLoader(inputs).load()

        assert config.cmake_toolchain_file == Path("/opt/aarch64.cmake")

    def test_nix_shell_pkg_config_variable(self):
        """Test that PKG_CONFIG_PATH_FOR_TARGET is used when present."""
        config = ConfigurationLoader(make_inputs(PKG_CONFIG_PATH_FOR_TARGET="")).load()

        assert config.pkg_config_var == "PKG_CONFIG_PATH_FOR_TARGET"

    def test_optional_paths(self):
        inputs = make_inputs(
            FFMPEG_LIBS_DIR="C:/ffmpeg/lib",
            FFMPEG_INCLUDE_DIR="C:/ffmpeg/include",
            FFMPEG_BINDING_PATH="C:/ffmpeg/binding.py",
            FFBIND_VENDOR_DIR="third_party",
            CROSS_TOOLCHAIN_PREFIX="aarch64-linux-gnu-",
        )
        config = ConfigurationLoader(inputs).load()

        assert config.ffmpeg_libs_dir == Path("C:/ffmpeg/lib")
        assert config.ffmpeg_include_dir == Path("C:/ffmpeg/include")
        assert config.ffmpeg_binding_path == Path("C:/ffmpeg/binding.py")
        assert config.vendor_dir == Path("third_party")
        assert config.cross_toolchain_prefix == "aarch64-linux-gnu-"
        assert config.is_cross

    def test_every_input_registered(self):
        """Test that each input is registered as a re-run trigger."""
        sink = DirectiveSink(echo=False)
        ConfigurationLoader(make_inputs(), sink).load()

        tracked = sink.tracked_env_vars
        for name in ConfigurationLoader.REQUIRED + ConfigurationLoader.OPTIONAL:
            assert name in tracked
        assert "CMAKE_TOOLCHAIN_FILE_x86_64_unknown_linux_gnu" in tracked

    def test_inputs_registered_before_validation(self):
        """Test that a failing load still reports what it depends on."""
        sink = DirectiveSink(echo=False)
        with pytest.raises(ConfigurationError):
            ConfigurationLoader({}, sink).load()

        assert "TARGET" in sink.tracked_env_vars

    def test_defaults_below_environment(self):
        """Test that ffbind.ini style defaults never override the environment."""
        loader = ConfigurationLoader(
            make_inputs(NUM_JOBS="2"),
            defaults={"NUM_JOBS": "16", "FFMPEG_LINK_MODE": "static"},
        )
        config = loader.load()

        assert config.num_jobs == 2
        assert config.link_mode is LinkMode.STATIC

    def test_environment_snapshot(self):
        """Test that the configuration keeps the inputs for child processes."""
        config = ConfigurationLoader(make_inputs(PATH="/usr/bin")).load()

        assert config.environment["PATH"] == "/usr/bin"
