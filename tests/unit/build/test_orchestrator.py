"""
Unit tests for BuildOrchestrator.

Native tools are never spawned: subprocess.run is mocked and the linker
strategy is replaced with a stub.
"""

from pathlib import Path
from unittest.mock import Mock, patch

import pytest

from ffbind.bindings.generator import BindingGenerationError
from ffbind.build.directives import DirectiveSink
from ffbind.build.linker import LinkOutcome
from ffbind.build.orchestrator import MANIFEST_NAME, BuildOrchestrator
from ffbind.build.pkg_config import ProbeError
from ffbind.build.process_runner import ProcessRunner, SubBuildError
from ffbind.config.build_config import BuildConfiguration, TargetTriple
from ffbind.config.environment import ChildProcessEnvironment


@pytest.fixture
def vendor(tmp_path):
    for name in ("ffmpeg", "rockchip-librga", "rockchip-mpp"):
        (tmp_path / "vendor" / name).mkdir(parents=True)
    return tmp_path / "vendor"


def make_config(tmp_path, vendor, **overrides):
    values = dict(
        target=TargetTriple.parse("aarch64-unknown-linux-gnu"),
        out_dir=tmp_path / "out",
        num_jobs=2,
        ffmpeg_configuration=(),
        vendor_dir=vendor,
        environment=ChildProcessEnvironment({"PATH": "/usr/bin"}),
    )
    values.update(overrides)
    return BuildConfiguration(**values)


def stub_linker(sink_effect=None):
    linker = Mock()

    def link(sink):
        sink.link_search(Path("/out/lib"))
        sink.link_lib("avcodec", "dylib")
        return LinkOutcome(include_paths=(Path("/out/include"),))

    linker.link.side_effect = sink_effect or link
    return linker


class TestBuildOrchestrator:
    """Test suite for BuildOrchestrator."""

    @patch("ffbind.build.orchestrator.create_linker")
    @patch("ffbind.build.process_runner.subprocess.run")
    def test_native_build(self, mock_run, mock_create_linker, tmp_path, vendor):
        mock_run.return_value = Mock(returncode=0)
        mock_create_linker.return_value = stub_linker()
        generator = Mock()
        generator.generate.return_value = tmp_path / "out" / "binding.py"
        config = make_config(tmp_path, vendor)

        sink = DirectiveSink(echo=False)
        result = BuildOrchestrator(binding_generator=generator, windows=False).build(config, sink)

        # configure, clean, build, install
        assert mock_run.call_count == 4
        install_include = tmp_path / "out" / "ffmpeg" / "install" / "include"
        assert result.include_dir == install_include
        generator.generate.assert_called_once_with(install_include, config.out_dir)
        assert result.binding_path == tmp_path / "out" / "binding.py"
        assert [d.render() for d in result.directives] == [
            "ffbind:link-search=native=/out/lib",
            "ffbind:link-lib=dylib=avcodec",
        ]
        assert result.manifest_path == config.out_dir / MANIFEST_NAME
        assert result.manifest_path.exists()
        assert result.build_time >= 0

    @patch("ffbind.build.orchestrator.create_linker")
    @patch("ffbind.build.process_runner.subprocess.run")
    def test_rockchip_build(self, mock_run, mock_create_linker, tmp_path, vendor):
        """Test hwaccel libraries before FFmpeg and cleanup after its install."""
        mock_run.return_value = Mock(returncode=0)
        mock_create_linker.return_value = stub_linker()
        config = make_config(
            tmp_path, vendor, rockchip_mpp=True, cross_toolchain_prefix="aarch64-linux-gnu-"
        )
        lib_dir = config.out_dir / "rockchip-mpp" / "install" / "lib"
        lib_dir.mkdir(parents=True)
        for name in ("librockchip_mpp.so", "librockchip_vpu.so"):
            (lib_dir / name).write_bytes(b"")

        runner = ProcessRunner()
        result = BuildOrchestrator(runner=runner, binding_generator=Mock(), windows=False).build(
            config, DirectiveSink(echo=False)
        )

        components = [i.component for i in runner.history]
        assert components == ["rockchip-librga"] * 3 + ["rockchip-mpp"] * 2 + ["ffmpeg"] * 4
        assert "--cross-file" in runner.history[0].cmd
        assert not (lib_dir / "librockchip_mpp.so").exists()
        assert not (lib_dir / "librockchip_vpu.so").exists()

        assert [p.parts[-4] for p in result.pkg_config_chain.entries] == [
            "rockchip-librga", "rockchip-mpp", "ffmpeg",
        ]
        chain_arg = mock_create_linker.call_args.args[1]
        assert chain_arg == result.pkg_config_chain

    @patch("ffbind.build.orchestrator.create_linker")
    @patch("ffbind.build.process_runner.subprocess.run")
    def test_failed_stage_stops_pipeline(self, mock_run, mock_create_linker, tmp_path, vendor):
        mock_run.return_value = Mock(returncode=1)
        generator = Mock()

        with pytest.raises(SubBuildError):
            BuildOrchestrator(binding_generator=generator, windows=False).build(
                make_config(tmp_path, vendor), DirectiveSink(echo=False)
            )

        mock_create_linker.assert_not_called()
        generator.generate.assert_not_called()

    @patch("ffbind.build.orchestrator.create_linker")
    @patch("ffbind.build.process_runner.subprocess.run")
    def test_probe_failure_skips_bindings(self, mock_run, mock_create_linker, tmp_path, vendor):
        mock_run.return_value = Mock(returncode=0)

        def fail(sink):
            raise ProbeError("libavcodec not found!", library="libavcodec")

        mock_create_linker.return_value = stub_linker(fail)
        generator = Mock()
        sink = DirectiveSink(echo=False)

        with pytest.raises(ProbeError):
            BuildOrchestrator(binding_generator=generator, windows=False).build(
                make_config(tmp_path, vendor), sink
            )

        assert sink.linkage_directives == []
        generator.generate.assert_not_called()

    @patch("ffbind.build.orchestrator.create_linker")
    @patch("ffbind.build.process_runner.subprocess.run")
    def test_binding_failure_leaves_no_manifest(self, mock_run, mock_create_linker, tmp_path, vendor):
        """Test that a failed generation removes the manifest of an earlier run."""
        mock_run.return_value = Mock(returncode=0)
        mock_create_linker.return_value = stub_linker()
        generator = Mock()
        generator.generate.side_effect = BindingGenerationError("Failed to parse headers")
        config = make_config(tmp_path, vendor)
        config.out_dir.mkdir(parents=True)
        (config.out_dir / MANIFEST_NAME).write_text("{}")

        with pytest.raises(BindingGenerationError):
            BuildOrchestrator(binding_generator=generator, windows=False).build(
                config, DirectiveSink(echo=False)
            )

        assert not (config.out_dir / MANIFEST_NAME).exists()

    @patch("ffbind.build.orchestrator.create_linker")
    @patch("ffbind.build.process_runner.subprocess.run")
    def test_windows_prebuilt_binding(self, mock_run, mock_create_linker, tmp_path, vendor):
        """Test that a prebuilt binding is copied instead of generated."""
        mock_run.return_value = Mock(returncode=0)
        mock_create_linker.return_value = stub_linker()
        prebuilt = tmp_path / "prebuilt.py"
        prebuilt.write_bytes(b"# prebuilt\n")
        generator = Mock()
        config = make_config(tmp_path, vendor, ffmpeg_binding_path=prebuilt)

        result = BuildOrchestrator(binding_generator=generator, windows=True).build(
            config, DirectiveSink(echo=False)
        )

        generator.generate.assert_not_called()
        assert result.binding_path.read_bytes() == b"# prebuilt\n"

    @patch("ffbind.build.orchestrator.create_linker")
    @patch("ffbind.build.process_runner.subprocess.run")
    def test_windows_include_dir(self, mock_run, mock_create_linker, tmp_path, vendor):
        mock_run.return_value = Mock(returncode=0)
        mock_create_linker.return_value = stub_linker()
        generator = Mock()
        config = make_config(tmp_path, vendor, ffmpeg_include_dir=Path("C:/ffmpeg/include"))

        BuildOrchestrator(binding_generator=generator, windows=True).build(
            config, DirectiveSink(echo=False)
        )

        generator.generate.assert_called_once_with(Path("C:/ffmpeg/include"), config.out_dir)

    @patch("ffbind.build.orchestrator.create_linker")
    def test_dry_run(self, mock_create_linker, tmp_path, vendor):
        """Test that a dry run writes neither manifest nor binding."""
        mock_create_linker.return_value = stub_linker()
        generator = Mock()

        result = BuildOrchestrator(
            runner=ProcessRunner(dry_run=True), binding_generator=generator, windows=False
        ).build(make_config(tmp_path, vendor), DirectiveSink(echo=False))

        assert result.binding_path is None
        assert result.manifest_path is None
        generator.generate.assert_not_called()

    @patch("ffbind.build.orchestrator.create_linker")
    def test_verbose_progress(self, mock_create_linker, tmp_path, vendor, capsys):
        mock_create_linker.return_value = stub_linker()

        BuildOrchestrator(
            runner=ProcessRunner(dry_run=True), binding_generator=Mock(), windows=False, verbose=True
        ).build(make_config(tmp_path, vendor), DirectiveSink(echo=False))

        out = capsys.readouterr().out
        for step in range(1, 6):
            assert f"[{step}/5]" in out
