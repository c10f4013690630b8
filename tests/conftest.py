"""
Shared test fixtures and configuration.

Every test runs against a sandboxed host: ``HostPaths`` re-roots all
absolute paths under ``tmp_path/root`` and the runner, downloader and
JSON fetcher are fakes. Nothing touches the network or the real system.
"""

from __future__ import annotations

from pathlib import Path

import pytest

from hostsetup.core.context import HostContext, HostPaths
from tests.fakes import FakeHost, FakeSystemctl


@pytest.fixture
def sandbox(tmp_path: Path) -> Path:
    root = tmp_path / "root"
    root.mkdir()
    return root


@pytest.fixture
def host(sandbox: Path) -> FakeHost:
    return FakeHost(sandbox)


@pytest.fixture
def ctx(host: FakeHost, sandbox: Path) -> HostContext:
    return HostContext(
        paths=HostPaths(sandbox),
        runner=host.runner,
        downloader=host.downloader,
        fetch_json=host.fetch_json,
        which=host.which,
        machine=lambda: "x86_64",
        timeout=5.0,
        command_timeout=5,
    )


@pytest.fixture
def systemctl(host: FakeHost, sandbox: Path) -> FakeSystemctl:
    """A sandbox that runs systemd."""
    (sandbox / "run/systemd/system").mkdir(parents=True)
    fake = FakeSystemctl()
    host.on("systemctl", result=fake)
    host.on("journalctl", result=fake.journalctl)
    return fake
