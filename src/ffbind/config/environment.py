"""Immutable child process environments.

Search paths are handed to spawned build tools through their environment.
Instead of mutating ``os.environ`` the orchestrator derives a new
ChildProcessEnvironment for each spawn and passes it explicitly.
"""

import os
from typing import Dict, Iterator, Mapping, Optional


class ChildProcessEnvironment(Mapping[str, str]):
    """Read-only snapshot of environment variables for a child process.

    Example:
        base = ChildProcessEnvironment.from_process()
        env = base.with_path_appended("PKG_CONFIG_PATH", "/opt/lib/pkgconfig")
        subprocess.run(cmd, env=env.as_dict())
    """

    __slots__ = ("_vars",)

    def __init__(self, variables: Optional[Mapping[str, str]] = None):
        self._vars: Dict[str, str] = {
            str(k): str(v) for k, v in sorted((variables or {}).items())
        }

    @classmethod
    def from_process(cls) -> "ChildProcessEnvironment":
        """Snapshot the current process environment."""
        return cls(os.environ)

    def __getitem__(self, key: str) -> str:
        return self._vars[key]

    def __iter__(self) -> Iterator[str]:
        return iter(self._vars)

    def __len__(self) -> int:
        return len(self._vars)

    def __eq__(self, other: object) -> bool:
        if isinstance(other, ChildProcessEnvironment):
            return self._vars == other._vars
        return NotImplemented

    def __hash__(self) -> int:
        return hash(tuple(self._vars.items()))

    def __repr__(self) -> str:
        return f"ChildProcessEnvironment({len(self._vars)} variables)"

    def with_var(self, name: str, value: str) -> "ChildProcessEnvironment":
        """Return a copy with ``name`` set to ``value``."""
        updated = dict(self._vars)
        updated[name] = value
        return ChildProcessEnvironment(updated)

    def with_path_appended(self, name: str, value: str) -> "ChildProcessEnvironment":
        """Return a copy with ``value`` appended to the colon list in ``name``.

        An unset variable is treated as empty, which yields ``":value"``
        exactly like joining onto an empty existing search path.
        """
        existing = self._vars.get(name, "")
        return self.with_var(name, f"{existing}:{value}")

    def as_dict(self) -> Dict[str, str]:
        """Plain dict suitable for ``subprocess.run(env=...)``."""
        return dict(self._vars)
