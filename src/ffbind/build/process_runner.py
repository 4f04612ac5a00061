"""Native build tool execution.

This module runs the external build tools (configure, make, meson, cmake,
ninja) as child processes and converts any failure into a SubBuildError
naming the stage and component.

Design:
    - Wraps subprocess.run with an explicit ChildProcessEnvironment
    - No retries and no timeout: native builds run until the tool exits
    - Output is streamed to the terminal (the tools' own progress output)
    - Dry-run mode records commands without spawning anything
"""

import logging
import shlex
import subprocess
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional, Sequence, Union

from ..config.environment import ChildProcessEnvironment
from ..errors import FFBindError


class SubBuildError(FFBindError):
    """Raised when a native build phase exits non-zero."""

    def __init__(self, message: str, component: str, stage: str,
                 returncode: Optional[int] = None):
        super().__init__(message)
        self.component = component
        self.stage = stage
        self.returncode = returncode


@dataclass(frozen=True)
class ProcessInvocation:
    """A command that was (or in dry-run mode, would have been) executed."""

    cmd: List[str]
    component: str
    stage: str
    cwd: Optional[Path]
    env: Optional[ChildProcessEnvironment]

    def describe(self) -> str:
        return " ".join(shlex.quote(part) for part in self.cmd)


class ProcessRunner:
    """Runs native build tools as child processes.

    Example usage:
        runner = ProcessRunner()
        runner.run(["make", "-C", "vendor/ffmpeg", "clean"], "ffmpeg", "cleaning")
    """

    def __init__(self, dry_run: bool = False, verbose: bool = False):
        """Initialize process runner.

        Args:
            dry_run: Log and record commands without executing them
            verbose: Echo each command before running it
        """
        self.dry_run = dry_run
        self.verbose = verbose
        self.history: List[ProcessInvocation] = []

    def run(
        self,
        cmd: Sequence[Union[str, Path]],
        component: str,
        stage: str,
        cwd: Optional[Path] = None,
        env: Optional[ChildProcessEnvironment] = None
    ) -> ProcessInvocation:
        """Run one build phase.

        Args:
            cmd: Command and arguments
            component: Component being built (e.g. "ffmpeg", "rockchip-mpp")
            stage: Phase verb used in diagnostics (e.g. "configuring")
            cwd: Working directory for the child process
            env: Complete environment for the child (default: inherit)

        Returns:
            The recorded invocation

        Raises:
            SubBuildError: If the tool cannot be started or exits non-zero
        """
        invocation = ProcessInvocation(
            cmd=[str(part) for part in cmd],
            component=component,
            stage=stage,
            cwd=cwd,
            env=env,
        )
        self.history.append(invocation)

        logging.debug(f"[{component}] {stage}: {invocation.describe()}")
        if self.verbose:
            print(f"      $ {invocation.describe()}")

        if self.dry_run:
            return invocation

        try:
            result = subprocess.run(
                invocation.cmd,
                cwd=str(cwd) if cwd is not None else None,
                env=env.as_dict() if env is not None else None,
            )
        except OSError as e:
            raise SubBuildError(
                f"Failed to run {component} {stage}: {e}",
                component=component,
                stage=stage,
            ) from e

        if result.returncode != 0:
            raise SubBuildError(
                f"Error {stage} {component} (exit code {result.returncode})",
                component=component,
                stage=stage,
                returncode=result.returncode,
            )

        return invocation
