"""
L4 Execution — System package manager (apt).

The installer only needs "make sure package X is present", plus the
one-time setup of a third-party apt source for packages Ubuntu does not
ship (Caddy).
"""

from __future__ import annotations

import logging
import shutil
import tempfile
from pathlib import Path

from hostsetup.core.context import HostContext
from hostsetup.core.errors import InstallFailure
from hostsetup.core.models.dependency import AptRepository

logger = logging.getLogger(__name__)

_APT_ENV = {"DEBIAN_FRONTEND": "noninteractive"}


class AptPackageManager:
    """Runs apt-get through the host runner.

    ``apt-get update`` runs at most once per instance unless a new
    source list is added.
    """

    def __init__(self, ctx: HostContext):
        self._ctx = ctx
        self._index_fresh = False

    def _apt(self, *args: str) -> dict:
        return self._ctx.runner(
            ["apt-get", *args],
            timeout=self._ctx.command_timeout,
            env_overrides=_APT_ENV,
        )

    def update(self) -> None:
        if self._index_fresh:
            return
        logger.info("Refreshing apt package index")
        result = self._apt("update")
        if not result.get("ok"):
            raise InstallFailure(f"apt-get update failed: {_detail(result)}")
        self._index_fresh = True

    def ensure_packages(self, *packages: str) -> None:
        """Install ``packages`` (already-installed ones are a no-op for apt)."""
        self.update()
        logger.info("Installing package(s): %s", " ".join(packages))
        result = self._apt("install", "-y", *packages)
        if not result.get("ok"):
            raise InstallFailure(f"apt-get install {' '.join(packages)} failed: {_detail(result)}")

    def add_repository(self, repo: AptRepository) -> None:
        """Register a signed third-party apt source.

        Skipped when both the keyring and the list file already exist.
        """
        keyring = self._ctx.paths(repo.keyring)
        list_path = self._ctx.paths(repo.list_path)
        if keyring.exists() and list_path.exists():
            logger.info("apt source %s already configured", repo.list_path)
            return

        if repo.prerequisites:
            self.ensure_packages(*repo.prerequisites)

        keyring.parent.mkdir(parents=True, exist_ok=True)
        list_path.parent.mkdir(parents=True, exist_ok=True)
        scratch = Path(tempfile.mkdtemp(prefix="hostsetup-apt-"))
        try:
            armored = scratch / "key.asc"
            self._ctx.downloader(repo.key_url, armored, timeout=self._ctx.timeout)
            result = self._ctx.runner(
                ["gpg", "--batch", "--yes", "--dearmor", "-o", str(keyring), str(armored)],
                timeout=self._ctx.timeout,
            )
            if not result.get("ok"):
                raise InstallFailure(f"Cannot import signing key {repo.key_url}: {_detail(result)}")

            staged = scratch / "source.list"
            self._ctx.downloader(repo.list_url, staged, timeout=self._ctx.timeout)
            shutil.copyfile(staged, list_path)
        finally:
            shutil.rmtree(scratch, ignore_errors=True)

        logger.info("Added apt source %s", repo.list_path)
        self._index_fresh = False


def _detail(result: dict) -> str:
    stderr = (result.get("stderr") or "").strip()
    tail = stderr.splitlines()[-1] if stderr else ""
    return tail or result.get("error", "unknown error")
