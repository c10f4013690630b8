"""
Host context — the shared host resources every component works against.

The installer mutates a handful of well-known places (binaries under
/usr/local, one systemd unit, one Caddyfile). Instead of touching them
through ambient globals, components receive a ``HostContext``:

    - ``paths``      re-roots absolute host paths (``/`` in production,
                     a temp dir in tests)
    - ``runner``     executes commands, returns result dicts
    - ``downloader`` streams a URL to a local file
    - ``fetch_json`` GETs a URL and decodes JSON
    - ``which``      PATH lookup

The CLI builds one with ``HostContext.from_config()``; tests build one
with fakes.
"""

from __future__ import annotations

import platform
import shutil
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Optional

# Single bound for every network fetch and the service health wait (seconds).
DEFAULT_TIMEOUT: float = 30.0

# apt-get install of a large package can be slow.
DEFAULT_COMMAND_TIMEOUT: int = 600

Runner = Callable[..., dict[str, Any]]
Downloader = Callable[..., int]
JsonFetcher = Callable[..., Any]


@dataclass(frozen=True)
class HostPaths:
    """Maps absolute host paths under a root directory."""

    root: Path = Path("/")

    def __call__(self, host_path: str | Path) -> Path:
        p = Path(host_path)
        if self.root == Path("/"):
            return p
        return self.root / p.relative_to(p.anchor) if p.is_absolute() else self.root / p

    @property
    def sandboxed(self) -> bool:
        return self.root != Path("/")


def _default_runner() -> Runner:
    from hostsetup.core.services.tool_install.execution.subprocess_runner import run_command

    return run_command


def _default_downloader() -> Downloader:
    from hostsetup.core.services.tool_install.execution.download import download_file

    return download_file


def _default_fetch_json() -> JsonFetcher:
    from hostsetup.core.services.tool_install.execution.download import fetch_json

    return fetch_json


@dataclass
class HostContext:
    """Everything a component needs to observe or change the host."""

    paths: HostPaths = field(default_factory=HostPaths)
    runner: Runner = field(default_factory=_default_runner)
    downloader: Downloader = field(default_factory=_default_downloader)
    fetch_json: JsonFetcher = field(default_factory=_default_fetch_json)
    which: Callable[[str], Optional[str]] = shutil.which
    machine: Callable[[], str] = platform.machine
    timeout: float = DEFAULT_TIMEOUT
    command_timeout: int = DEFAULT_COMMAND_TIMEOUT

    @classmethod
    def from_config(cls, config: Any) -> HostContext:
        """Build a production context from an ``InstallerConfig``."""
        return cls(
            paths=HostPaths(Path(config.root)),
            timeout=config.timeout,
            command_timeout=config.command_timeout,
        )
