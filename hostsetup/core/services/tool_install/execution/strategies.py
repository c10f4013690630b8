"""
L4 Execution — Install strategies.

One handler per ``InstallStrategy``. Each takes a ``Dependency``, does
whatever puts it on the host, and raises an ``InstallerError`` subclass
when it cannot. The pipeline picks the handler; handlers never decide
*whether* to install.
"""

from __future__ import annotations

import logging
from typing import Callable

from hostsetup.core.context import HostContext
from hostsetup.core.errors import InstallFailure
from hostsetup.core.models.dependency import Dependency, InstallStrategy
from hostsetup.core.models.release import Asset, ReleaseMetadata
from hostsetup.core.services.tool_install.domain.architecture import resolve_architecture
from hostsetup.core.services.tool_install.domain.asset_patterns import build_asset_patterns
from hostsetup.core.services.tool_install.execution.artifact_installer import ArtifactInstaller
from hostsetup.core.services.tool_install.execution.package_manager import AptPackageManager
from hostsetup.core.services.tool_install.execution.profile import ensure_profile_path
from hostsetup.core.services.tool_install.execution.release_locator import ReleaseLocator

logger = logging.getLogger(__name__)

Handler = Callable[[Dependency], str]


class InstallStrategies:
    """The three ways a dependency gets installed, bound to one host.

    Release metadata fetched during a run is kept for the rest of that
    run, so the pipeline's "is there a newer release?" check and the
    install itself see the same release.
    """

    def __init__(
        self,
        ctx: HostContext,
        *,
        locator: ReleaseLocator | None = None,
        installer: ArtifactInstaller | None = None,
        apt: AptPackageManager | None = None,
    ):
        self._ctx = ctx
        self.locator = locator or ReleaseLocator(ctx.fetch_json, timeout=ctx.timeout)
        self.installer = installer or ArtifactInstaller(ctx)
        self.apt = apt or AptPackageManager(ctx)
        self._releases: dict[str, ReleaseMetadata] = {}

    def handlers(self) -> dict[InstallStrategy, Handler]:
        return {
            InstallStrategy.PACKAGE_MANAGER: self.package_manager,
            InstallStrategy.DIRECT_DOWNLOAD: self.direct_download,
            InstallStrategy.RELEASE_ARTIFACT: self.release_artifact,
        }

    def latest_release(self, repository: str) -> ReleaseMetadata:
        if repository not in self._releases:
            self._releases[repository] = self.locator.latest_release(repository)
        return self._releases[repository]

    def latest_version(self, dep: Dependency) -> str | None:
        """Latest published version of a release-artifact dependency.

        None when the release channel only gave an advisory tag.
        """
        if not dep.repository:
            return None
        return self.latest_release(dep.repository).version

    # ── Handlers ─────────────────────────────────────────────────

    def package_manager(self, dep: Dependency) -> str:
        package = dep.package or dep.name
        if dep.apt_repository:
            self.apt.add_repository(dep.apt_repository)
        self.apt.ensure_packages(package)
        return f"apt package {package}"

    def direct_download(self, dep: Dependency) -> str:
        if not dep.url:
            raise InstallFailure(f"{dep.name} declares no download url")
        if not dep.install_dir and not dep.binary_path:
            raise InstallFailure(f"{dep.name} declares neither install_dir nor binary_path")

        arch = resolve_architecture(self._ctx.machine(), dep.arch_map)
        url = dep.url.format(version=dep.version or "", arch=arch, os="linux")
        asset = Asset(name=url.rstrip("/").rsplit("/", 1)[-1], url=url, checksum=dep.checksum)

        if dep.install_dir:
            self.installer.install_tree(
                asset,
                dep.install_dir,
                archive_root=dep.archive_root,
                probe_binary=dep.binary_path,
                liveness=dep.liveness,
            )
        else:
            self.installer.install(asset, dep.binary_path, liveness=dep.liveness)

        if dep.profile_script and dep.path_entries:
            ensure_profile_path(self._ctx, dep.profile_script, dep.path_entries, dep.profile_env)
        return asset.name

    def release_artifact(self, dep: Dependency) -> str:
        if not dep.repository or not dep.binary_path:
            raise InstallFailure(f"{dep.name} declares no repository or binary_path")

        arch = resolve_architecture(self._ctx.machine(), dep.arch_map)
        release = self.latest_release(dep.repository)
        binary = dep.asset_name or dep.name
        patterns = build_asset_patterns(binary, release, arch=arch)
        asset = self.locator.select_asset(release, patterns)

        self.installer.install(
            asset, dep.binary_path, liveness=dep.liveness, binary_name=binary,
        )
        return f"{asset.name} ({release.tag})"
