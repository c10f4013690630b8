"""
Dependency model — a tool or runtime the application needs on the host.

Declared statically per run (built-in recipes, optionally overridden
from hostsetup.yml), evaluated once by the dependency pipeline.
"""

from __future__ import annotations

import hashlib
from enum import Enum
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator


class InstallStrategy(str, Enum):
    """How a missing or outdated dependency gets onto the host."""

    PACKAGE_MANAGER = "package-manager"
    DIRECT_DOWNLOAD = "direct-download"
    RELEASE_ARTIFACT = "release-artifact"


class DependencyState(str, Enum):
    """Pipeline states, in the order a dependency moves through them."""

    UNCHECKED = "unchecked"
    PROBED = "probed"
    SATISFIED = "satisfied"
    NEEDS_INSTALL = "needs_install"
    INSTALLED = "installed"
    VERIFIED = "verified"
    FAILED = "failed"


class AptRepository(BaseModel):
    """A third-party apt source that must exist before installing."""

    key_url: str
    keyring: str
    list_url: str
    list_path: str
    prerequisites: list[str] = Field(default_factory=list)


class Dependency(BaseModel):
    """One declared dependency.

    ``probe`` is the version command (``["go", "version"]``); its first
    element is replaced with ``binary_path`` when that file exists, so
    tools installed outside ``PATH`` are still found.
    """

    # versions written unquoted in YAML arrive as floats
    model_config = ConfigDict(coerce_numbers_to_str=True)

    name: str
    probe: list[str]
    version_pattern: str = r"(\d+(?:\.\d+)+)"
    minimum_version: str | None = None
    strategy: InstallStrategy
    required: bool = True

    # where the installed binary lives (file installs and probes)
    binary_path: str | None = None

    # package-manager
    package: str | None = None
    apt_repository: AptRepository | None = None

    # direct-download
    url: str | None = None
    version: str | None = None
    install_dir: str | None = None
    checksum: str | None = None
    archive_root: str | None = None

    # release-artifact
    repository: str | None = None
    asset_name: str | None = None
    track_latest: bool = False

    arch_map: dict[str, str] = Field(default_factory=dict)
    liveness: list[str] = Field(default_factory=lambda: ["--version"])

    # login-shell PATH wiring (e.g. /etc/profile.d/golang.sh)
    profile_script: str | None = None
    profile_env: dict[str, str] = Field(default_factory=dict)
    path_entries: list[str] = Field(default_factory=list)

    @field_validator("minimum_version", "version")
    @classmethod
    def _version_parses(cls, value: str | None) -> str | None:
        # tool_install.data imports this module
        from hostsetup.core.services.tool_install.domain.version import parse_version

        if value is not None:
            parse_version(value)
        return value

    @field_validator("checksum")
    @classmethod
    def _checksum_format(cls, value: str | None) -> str | None:
        if value is None:
            return value
        algo, sep, digest = value.partition(":")
        if not sep or not digest:
            raise ValueError(f"checksum must look like 'sha256:<hex>', got {value!r}")
        if algo.lower() not in hashlib.algorithms_available:
            raise ValueError(f"unknown checksum algorithm {algo!r}")
        return value


class InstallDecision(BaseModel):
    """What the pipeline decided to do with a probed dependency."""

    dependency: str
    action: Literal["skip", "install", "upgrade"]
    reason: str = ""

    @property
    def mutates(self) -> bool:
        return self.action != "skip"
