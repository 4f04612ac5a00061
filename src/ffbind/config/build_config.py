"""
Build configuration loading.

This module reads the build inputs (environment variables, optionally
backed by an ffbind.ini file) into an immutable BuildConfiguration record.
Every input name is registered with the directive sink so the surrounding
build knows to re-run ffbind whenever one of them changes.
"""

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import TYPE_CHECKING, Dict, Mapping, Optional, Tuple

from ..errors import FFBindError
from .environment import ChildProcessEnvironment

if TYPE_CHECKING:
    from ..build.directives import DirectiveSink


class ConfigurationError(FFBindError):
    """Raised when a build input is missing or cannot be parsed."""

    def __init__(self, message: str, name: Optional[str] = None):
        super().__init__(message)
        self.name = name


class LinkMode(Enum):
    """How the component libraries are linked into the consumer."""

    STATIC = "static"
    DYNAMIC = "dynamic"

    @classmethod
    def parse(cls, value: str) -> "LinkMode":
        """
        Parse link mode text.

        Args:
            value: Either "static" or "dynamic"

        Returns:
            Matching LinkMode

        Raises:
            ConfigurationError: For any other text
        """
        for mode in cls:
            if mode.value == value:
                return mode
        raise ConfigurationError(
            f"Invalid FFMPEG_LINK_MODE value '{value}', expected [static,dynamic]",
            name="FFMPEG_LINK_MODE",
        )

    @property
    def is_static(self) -> bool:
        return self is LinkMode.STATIC

    def __str__(self) -> str:
        # Keyword used in link-lib directives
        return "static" if self is LinkMode.STATIC else "dylib"


@dataclass(frozen=True)
class TargetTriple:
    """A parsed ``<arch>-<vendor>-<os>[-<env>]`` target triple."""

    triple: str
    arch: str
    vendor: str
    os: str
    env: Optional[str] = None

    # Triple OS names that differ from the names configure scripts expect
    OS_ALIASES = {"darwin": "macos"}

    @classmethod
    def parse(cls, triple: str) -> "TargetTriple":
        """
        Parse a target triple.

        Example:
            >>> TargetTriple.parse("aarch64-unknown-linux-gnu").os
            'linux'
        """
        parts = triple.split("-")
        if len(parts) < 3 or not all(parts):
            raise ConfigurationError(
                f"Invalid TARGET value '{triple}', expected <arch>-<vendor>-<os>[-<env>]",
                name="TARGET",
            )
        arch, vendor, os_name = parts[0], parts[1], parts[2]
        env = "-".join(parts[3:]) or None
        return cls(
            triple=triple,
            arch=arch,
            vendor=vendor,
            os=cls.OS_ALIASES.get(os_name, os_name),
            env=env,
        )

    @property
    def sanitized(self) -> str:
        """Triple usable inside an environment variable name."""
        return self.triple.replace("-", "_")

    @property
    def is_windows(self) -> bool:
        return self.os == "windows"


@dataclass(frozen=True)
class BuildConfiguration:
    """Immutable record of all build inputs for one ffbind invocation."""

    target: TargetTriple
    out_dir: Path
    num_jobs: int
    ffmpeg_configuration: Tuple[str, ...]
    link_mode: Optional[LinkMode] = None
    rockchip_mpp: bool = False
    docs_rs: Optional[str] = None
    cross_toolchain_prefix: Optional[str] = None
    cmake_toolchain_file: Optional[Path] = None
    ffmpeg_libs_dir: Optional[Path] = None
    ffmpeg_include_dir: Optional[Path] = None
    ffmpeg_binding_path: Optional[Path] = None
    vendor_dir: Path = Path("vendor")
    pkg_config_var: str = "PKG_CONFIG_PATH"
    environment: ChildProcessEnvironment = field(
        default_factory=ChildProcessEnvironment, compare=False, repr=False
    )

    @property
    def is_cross(self) -> bool:
        return self.cross_toolchain_prefix is not None


def remove_verbatim(path: str) -> Path:
    r"""Strip a Windows ``\\?\`` verbatim prefix, which clang ``-I`` rejects."""
    prefix = "\\\\?\\"
    if path.startswith(prefix):
        path = path[len(prefix):]
    return Path(path)


def parse_bool(value: Optional[str]) -> bool:
    """Parse ``true``/``false`` after trimming; anything else is False."""
    if value is None:
        return False
    return value.strip() == "true"


class ConfigurationLoader:
    """
    Loads a BuildConfiguration from environment-style inputs.

    Example usage:
        sink = DirectiveSink()
        config = ConfigurationLoader(os.environ, sink).load()
        print(config.target.arch, config.num_jobs)
    """

    REQUIRED = ("TARGET", "OUT_DIR", "NUM_JOBS", "FFMPEG_CONFIGURATION")

    OPTIONAL = (
        "DOCS_RS",
        "FFMPEG_LINK_MODE",
        "FFMPEG_ROCKCHIP_MPP",
        "CROSS_TOOLCHAIN_PREFIX",
        "FFMPEG_LIBS_DIR",
        "FFMPEG_INCLUDE_DIR",
        "FFMPEG_BINDING_PATH",
        "FFBIND_VENDOR_DIR",
        "PKG_CONFIG_PATH",
        "PKG_CONFIG_PATH_FOR_TARGET",
    )

    def __init__(
        self,
        environ: Optional[Mapping[str, str]] = None,
        sink: Optional["DirectiveSink"] = None,
        defaults: Optional[Mapping[str, str]] = None,
    ):
        """
        Initialize the loader.

        Args:
            environ: Environment to read (default: the process environment)
            sink: Directive sink receiving rerun-if-env-changed registrations
            defaults: Fallback values, e.g. from ffbind.ini
        """
        self.environ = ChildProcessEnvironment(environ) if environ is not None \
            else ChildProcessEnvironment.from_process()
        self.sink = sink
        self.defaults: Dict[str, str] = dict(defaults or {})

    def _get(self, name: str) -> Optional[str]:
        if name in self.environ:
            return self.environ[name]
        return self.defaults.get(name)

    def _require(self, name: str) -> str:
        value = self._get(name)
        if value is None:
            raise ConfigurationError(f"{name} env var is required but not set", name=name)
        return value

    def _register(self, name: str) -> None:
        if self.sink is not None:
            self.sink.rerun_if_env_changed(name)

    def load(self) -> BuildConfiguration:
        """
        Read and validate every build input.

        Returns:
            The immutable BuildConfiguration

        Raises:
            ConfigurationError: If a required input is missing or malformed
        """
        for name in self.REQUIRED + self.OPTIONAL:
            self._register(name)

        target = TargetTriple.parse(self._require("TARGET"))
        out_dir = remove_verbatim(self._require("OUT_DIR"))

        num_jobs_text = self._require("NUM_JOBS").strip()
        try:
            num_jobs = int(num_jobs_text)
        except ValueError as e:
            raise ConfigurationError(
                f"Invalid NUM_JOBS value '{num_jobs_text}', expected a positive integer",
                name="NUM_JOBS",
            ) from e
        if num_jobs < 1:
            raise ConfigurationError(
                f"Invalid NUM_JOBS value '{num_jobs_text}', expected a positive integer",
                name="NUM_JOBS",
            )

        ffmpeg_configuration = tuple(
            flag for flag in self._require("FFMPEG_CONFIGURATION").split(" ") if flag
        )

        link_mode_text = self._get("FFMPEG_LINK_MODE")
        link_mode = LinkMode.parse(link_mode_text) if link_mode_text is not None else None

        toolchain_var = f"CMAKE_TOOLCHAIN_FILE_{target.sanitized}"
        self._register(toolchain_var)
        cmake_toolchain_file = self._get(toolchain_var)

        # Inside a nix shell pkg-config reads the *_FOR_TARGET variant
        pkg_config_var = "PKG_CONFIG_PATH_FOR_TARGET" \
            if "PKG_CONFIG_PATH_FOR_TARGET" in self.environ else "PKG_CONFIG_PATH"

        return BuildConfiguration(
            target=target,
            out_dir=out_dir,
            num_jobs=num_jobs,
            ffmpeg_configuration=ffmpeg_configuration,
            link_mode=link_mode,
            rockchip_mpp=parse_bool(self._get("FFMPEG_ROCKCHIP_MPP")),
            docs_rs=self._get("DOCS_RS"),
            cross_toolchain_prefix=self._get("CROSS_TOOLCHAIN_PREFIX"),
            cmake_toolchain_file=Path(cmake_toolchain_file) if cmake_toolchain_file else None,
            ffmpeg_libs_dir=self._optional_path("FFMPEG_LIBS_DIR"),
            ffmpeg_include_dir=self._optional_path("FFMPEG_INCLUDE_DIR"),
            ffmpeg_binding_path=self._optional_path("FFMPEG_BINDING_PATH"),
            vendor_dir=Path(self._get("FFBIND_VENDOR_DIR") or "vendor"),
            pkg_config_var=pkg_config_var,
            environment=self.environ,
        )

    def _optional_path(self, name: str) -> Optional[Path]:
        value = self._get(name)
        return remove_verbatim(value) if value else None
