"""
L4 Execution — Artifact installer.

Downloads an artifact to a scratch directory beside its target and swaps
it into place as the very last step. Until that swap, the live target is
never opened for writing, truncated or removed: a failed download, a bad
checksum or a broken archive leaves the previous installation exactly as
it was.

Two shapes are supported:

- ``install``       single executable (raw binary, phar, or one member
                    of a .tar.gz) → a file path, swapped with ``os.replace``
- ``install_tree``  whole-directory tarball (the Go toolchain) → a
                    directory, swapped by rename with restore on failure
"""

from __future__ import annotations

import logging
import os
import shutil
import tarfile
import tempfile
from pathlib import Path

from hostsetup.core.context import HostContext
from hostsetup.core.errors import InstallFailure
from hostsetup.core.models.release import Asset, InstalledBinary
from hostsetup.core.services.tool_install.data.constants import PROBE_TIMEOUT
from hostsetup.core.services.tool_install.domain.asset_patterns import is_archive
from hostsetup.core.services.tool_install.execution.download import verify_checksum

logger = logging.getLogger(__name__)

_HTML_MARKERS = (b"<!doctype html", b"<html")


class ArtifactInstaller:
    """Places downloaded artifacts at their install paths atomically."""

    def __init__(self, ctx: HostContext):
        self._ctx = ctx

    # ── Single executable ────────────────────────────────────────

    def install(
        self,
        asset: Asset,
        target: str,
        *,
        liveness: list[str] | tuple[str, ...] = ("--version",),
        binary_name: str | None = None,
    ) -> InstalledBinary:
        """Install ``asset`` as the executable at host path ``target``.

        Args:
            asset: What to download.
            target: Absolute host path of the executable.
            liveness: Arguments for the post-install probe.
            binary_name: Member to pull out of an archive asset
                (defaults to the target's file name).

        Raises:
            NetworkError / NotFound: the download failed.
            InstallFailure: the payload is unusable or cannot be moved.
        """
        dest = self._ctx.paths(target)
        dest.parent.mkdir(parents=True, exist_ok=True)
        scratch = Path(tempfile.mkdtemp(prefix=f".{dest.name}.", dir=dest.parent))

        try:
            payload = scratch / asset.name
            self._fetch(asset, payload)

            if is_archive(asset.name):
                staged = self._extract_member(payload, scratch / "extracted", binary_name or dest.name)
            else:
                self._validate_binary(payload, asset.name)
                staged = payload

            os.chmod(staged, 0o755)

            if dest.exists():
                logger.info("Replacing existing %s", target)
            try:
                os.replace(staged, dest)
            except OSError as e:
                raise InstallFailure(f"Cannot move {asset.name} into {target}: {e}") from e
        finally:
            shutil.rmtree(scratch, ignore_errors=True)

        logger.info("Installed %s → %s", asset.name, target)
        return self._probe(dest, target, asset, liveness)

    # ── Directory tree ───────────────────────────────────────────

    def install_tree(
        self,
        asset: Asset,
        target_dir: str,
        *,
        archive_root: str | None = None,
        probe_binary: str | None = None,
        liveness: list[str] | tuple[str, ...] = ("--version",),
    ) -> InstalledBinary:
        """Install a tarball's tree as host directory ``target_dir``.

        The archive is fully extracted next to ``target_dir`` before the
        old tree is touched. The old tree is then renamed aside, the new
        one renamed in, and the old one deleted; if the second rename
        fails the old tree is put back.

        Args:
            archive_root: Top-level directory inside the tarball
                (``"go"`` for the Go toolchain).
            probe_binary: Host path of the executable to probe afterwards.
        """
        dest = self._ctx.paths(target_dir)
        dest.parent.mkdir(parents=True, exist_ok=True)
        scratch = Path(tempfile.mkdtemp(prefix=f".{dest.name}.", dir=dest.parent))

        try:
            payload = scratch / asset.name
            self._fetch(asset, payload)

            if not tarfile.is_tarfile(payload):
                raise InstallFailure(f"{asset.name} is not a tar archive")
            tree_root = scratch / "tree"
            try:
                with tarfile.open(payload, "r:*") as tf:
                    tf.extractall(tree_root, filter="data")
            except (tarfile.TarError, OSError) as e:
                raise InstallFailure(f"Extract of {asset.name} failed: {e}") from e

            new_tree = tree_root / archive_root if archive_root else tree_root
            if not new_tree.is_dir():
                raise InstallFailure(f"{asset.name} has no top-level '{archive_root}' directory")

            previous = scratch / "previous"
            had_previous = dest.exists()
            try:
                if had_previous:
                    os.rename(dest, previous)
                os.rename(new_tree, dest)
            except OSError as e:
                if had_previous and previous.exists() and not dest.exists():
                    os.rename(previous, dest)
                raise InstallFailure(f"Cannot move new tree into {target_dir}: {e}") from e
        finally:
            # also removes the previous tree once the swap succeeded
            shutil.rmtree(scratch, ignore_errors=True)

        logger.info("Installed %s → %s", asset.name, target_dir)
        if not probe_binary:
            return InstalledBinary(path=target_dir, asset=asset.name)
        return self._probe(self._ctx.paths(probe_binary), probe_binary, asset, liveness)

    # ── Helpers ──────────────────────────────────────────────────

    def _fetch(self, asset: Asset, payload: Path) -> None:
        self._ctx.downloader(asset.url, payload, timeout=self._ctx.timeout)
        if asset.checksum and not verify_checksum(payload, asset.checksum):
            raise InstallFailure(f"Checksum mismatch for {asset.name}")

    @staticmethod
    def _validate_binary(path: Path, name: str) -> None:
        size = path.stat().st_size if path.exists() else 0
        if size == 0:
            raise InstallFailure(f"Downloaded {name} is empty")
        with open(path, "rb") as f:
            head = f.read(512).lstrip().lower()
        if head.startswith(_HTML_MARKERS):
            raise InstallFailure(f"Downloaded {name} is an HTML page, not an executable")

    @staticmethod
    def _extract_member(archive: Path, into: Path, binary_name: str) -> Path:
        if not tarfile.is_tarfile(archive):
            raise InstallFailure(f"{archive.name} is not a tar archive")
        into.mkdir(parents=True, exist_ok=True)
        out = into / binary_name
        try:
            with tarfile.open(archive, "r:*") as tf:
                for member in tf.getmembers():
                    if member.isfile() and Path(member.name).name == binary_name:
                        src = tf.extractfile(member)
                        if src is None:
                            continue
                        with src, open(out, "wb") as f:
                            shutil.copyfileobj(src, f)
                        return out
                available = [Path(m.name).name for m in tf.getmembers() if m.isfile()]
        except (tarfile.TarError, OSError) as e:
            raise InstallFailure(f"Extract of {archive.name} failed: {e}") from e
        raise InstallFailure(
            f"Binary '{binary_name}' not found in {archive.name} (files: {', '.join(available[:10])})"
        )

    def _probe(
        self,
        real_path: Path,
        target: str,
        asset: Asset,
        liveness: list[str] | tuple[str, ...],
    ) -> InstalledBinary:
        result = self._ctx.runner([str(real_path), *liveness], timeout=PROBE_TIMEOUT)
        output = (result.get("stdout") or result.get("stderr") or "").strip()
        if result.get("ok"):
            first = output.splitlines()[0] if output else ""
            logger.info("%s responds: %s", target, first or "(no output)")
            return InstalledBinary(path=target, asset=asset.name, probe_ok=True, probe_output=output)

        logger.warning(
            "Liveness probe '%s %s' failed: %s (some binaries need a subcommand to respond)",
            target, " ".join(liveness), result.get("error", "unknown error"),
        )
        return InstalledBinary(path=target, asset=asset.name, probe_ok=False, probe_output=output)
