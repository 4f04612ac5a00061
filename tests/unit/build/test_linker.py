"""
Unit tests for the library linkers.
"""

from pathlib import Path
from unittest.mock import Mock

import pytest

from ffbind.build.artifacts import PkgConfigPathChain
from ffbind.build.directives import DirectiveSink
from ffbind.build.linker import (
    LIBS,
    DirectoryBasedLinker,
    ProbeBasedLinker,
    create_linker,
    link_name,
)
from ffbind.build.pkg_config import LinkItem, PkgConfigLibrary, ProbeError
from ffbind.config.build_config import BuildConfiguration, LinkMode, TargetTriple
from ffbind.config.environment import ChildProcessEnvironment


def make_library(name, lib_dir, extra=()):
    return PkgConfigLibrary(
        name=name,
        version="1.0",
        link_paths=(lib_dir,),
        libs=(LinkItem(link_name(name)),) + tuple(LinkItem(e) for e in extra),
        include_paths=(lib_dir.parent / "include",),
    )


def make_prober(lib_dir, statik=False, missing=None):
    prober = Mock()
    prober.statik = statik

    def probe(name):
        if name == missing:
            raise ProbeError(f"{name} not found!", library=name)
        return make_library(name, lib_dir, extra=("m",))

    prober.probe.side_effect = probe
    return prober


def make_config(**overrides):
    values = dict(
        target=TargetTriple.parse("x86_64-unknown-linux-gnu"),
        out_dir=Path("/out"),
        num_jobs=1,
        ffmpeg_configuration=(),
        environment=ChildProcessEnvironment({"PATH": "/usr/bin"}),
    )
    values.update(overrides)
    return BuildConfiguration(**values)


class TestLinkName:
    def test_strips_lib_prefix(self):
        assert link_name("libavcodec") == "avcodec"
        assert link_name("swscale") == "swscale"


class TestProbeBasedLinker:
    """Test suite for ProbeBasedLinker."""

    def test_missing_library_emits_nothing(self, tmp_path):
        """Test that one missing library means zero linkage directives."""
        sink = DirectiveSink(echo=False)
        linker = ProbeBasedLinker(make_prober(tmp_path, missing="libswscale"))

        with pytest.raises(ProbeError):
            linker.link(sink)

        assert sink.linkage_directives == []

    def test_dynamic_link(self, tmp_path):
        sink = DirectiveSink(echo=False)
        outcome = ProbeBasedLinker(make_prober(tmp_path)).link(sink)

        rendered = [d.render() for d in sink.directives]
        assert rendered[0] == f"ffbind:link-search=native={tmp_path}"
        assert rendered.count(f"ffbind:link-search=native={tmp_path}") == 1
        assert "ffbind:link-lib=dylib=avcodec" in rendered
        assert "ffbind:link-lib=dylib=m" in rendered
        assert outcome.include_paths == (tmp_path.parent / "include",)
        assert [library.name for library in outcome.libraries] == list(LIBS)

    def test_probes_every_library_twice(self, tmp_path):
        """Test the dry pass followed by the real pass."""
        prober = make_prober(tmp_path)
        ProbeBasedLinker(prober).link(DirectiveSink(echo=False))

        probed = [call.args[0] for call in prober.probe.call_args_list]
        assert probed == list(LIBS) + list(LIBS)

    def test_static_link_uses_archives(self, tmp_path):
        """Test that only libraries with an archive are linked statically."""
        (tmp_path / "libavcodec.a").write_bytes(b"!<arch>\n")
        sink = DirectiveSink(echo=False)

        ProbeBasedLinker(make_prober(tmp_path, statik=True), libraries=("libavcodec",)).link(sink)

        rendered = [d.render() for d in sink.linkage_directives]
        assert rendered == [
            f"ffbind:link-search=native={tmp_path}",
            "ffbind:link-lib=static=avcodec",
            "ffbind:link-lib=dylib=m",
        ]

    def test_frameworks(self, tmp_path):
        prober = Mock(statik=False)
        prober.probe.return_value = PkgConfigLibrary(
            name="libavcodec",
            version="1.0",
            libs=(LinkItem("avcodec"), LinkItem("VideoToolbox", framework=True)),
        )
        sink = DirectiveSink(echo=False)

        ProbeBasedLinker(prober, libraries=("libavcodec",)).link(sink)

        assert sink.linkage_directives[-1].value == "framework=VideoToolbox"

    def test_dry_run(self, tmp_path):
        libraries = ProbeBasedLinker(make_prober(tmp_path)).dry_run()

        assert len(libraries) == len(LIBS)


class TestDirectoryBasedLinker:
    """Test suite for DirectoryBasedLinker."""

    def test_directives(self):
        sink = DirectiveSink(echo=False)
        DirectoryBasedLinker(Path("C:/ffmpeg/lib")).link(sink)

        rendered = [d.render() for d in sink.directives]
        assert rendered[0] == f"ffbind:link-search=native={Path('C:/ffmpeg/lib')}"
        assert rendered[1:] == [f"ffbind:link-lib=static={link_name(name)}" for name in LIBS]

    def test_dynamic_mode(self):
        sink = DirectiveSink(echo=False)
        DirectoryBasedLinker(Path("C:/ffmpeg/lib"), LinkMode.DYNAMIC).link(sink)

        assert sink.directives[1].value == "dylib=avcodec"


class TestCreateLinker:
    """Test suite for linker strategy selection."""

    def test_windows_uses_libs_dir(self):
        config = make_config(ffmpeg_libs_dir=Path("C:/ffmpeg/lib"))
        linker = create_linker(config, PkgConfigPathChain(), Path("/out/lib"), windows=True)

        assert isinstance(linker, DirectoryBasedLinker)
        assert linker.libs_dir == Path("C:/ffmpeg/lib")
        assert linker.mode is LinkMode.STATIC

    def test_windows_falls_back_to_install_dir(self):
        config = make_config(link_mode=LinkMode.DYNAMIC)
        linker = create_linker(config, PkgConfigPathChain(), Path("/out/lib"), windows=True)

        assert linker.libs_dir == Path("/out/lib")
        assert linker.mode is LinkMode.DYNAMIC

    def test_probe_defaults_to_dynamic(self):
        """Test that an unset link mode probes the dynamic link line."""
        linker = create_linker(make_config(), PkgConfigPathChain(), Path("/out/lib"), windows=False)

        assert isinstance(linker, ProbeBasedLinker)
        assert linker.prober.statik is False

    def test_probe_environment_holds_chain(self):
        """Test that the chain replaces the pkg-config variable of the child only."""
        chain = PkgConfigPathChain((Path("/a/pc"), Path("/b/pc")))
        config = make_config(link_mode=LinkMode.STATIC, pkg_config_var="PKG_CONFIG_PATH_FOR_TARGET")

        linker = create_linker(config, chain, Path("/out/lib"), windows=False)

        assert linker.prober.statik is True
        assert linker.prober.env["PKG_CONFIG_PATH_FOR_TARGET"] == "/a/pc:/b/pc"
        assert "PKG_CONFIG_PATH_FOR_TARGET" not in config.environment
