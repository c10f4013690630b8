"""
L1 Domain — Release asset naming (pure).

Builds the prioritized list of names a GoReleaser-style release may use
for a binary, and matches them against an asset listing.
"""

from __future__ import annotations

from fnmatch import fnmatchcase

from hostsetup.core.errors import NoMatchingAsset
from hostsetup.core.models.release import Asset, ReleaseMetadata
from hostsetup.core.services.tool_install.data.constants import ARCHIVE_SUFFIXES


def build_asset_patterns(
    binary: str,
    release: ReleaseMetadata,
    *,
    os_name: str = "linux",
    arch: str,
) -> list[str]:
    """Candidate asset names, most specific first.

    1. exact tag        ``captaincore_v1.2.3_linux_amd64``
    2. bare version     ``captaincore_1.2.3_linux_amd64``
    3. OS + arch only   ``captaincore[-_]linux[-_]amd64``
    4. bare name        ``captaincore``

    Each is followed by its ``.tar.gz`` form. An advisory release (no
    real tag) skips 1 and 2 — a literal ``latest`` never appears in a
    real asset name.
    """
    bases: list[str] = []
    if not release.advisory:
        bases.append(f"{binary}_{release.tag}_{os_name}_{arch}")
        bases.append(f"{binary}_{release.version}_{os_name}_{arch}")
    bases.append(f"{binary}[-_]{os_name}[-_]{arch}")
    bases.append(binary)

    patterns: list[str] = []
    for base in bases:
        for candidate in (base, base + ARCHIVE_SUFFIXES[0]):
            if candidate not in patterns:
                patterns.append(candidate)
    return patterns


def select_asset(release: ReleaseMetadata, patterns: list[str]) -> Asset:
    """Return the asset matched by the highest-priority pattern.

    Patterns are tried in order; for each one the whole asset list is
    scanned, so a later pattern never wins over an earlier one even if
    its asset comes first in the listing. Matching is a
    case-insensitive glob on the asset name.

    Raises:
        NoMatchingAsset: with the available names, when nothing matches.
    """
    for pattern in patterns:
        wanted = pattern.lower()
        for asset in release.assets:
            if fnmatchcase(asset.name.lower(), wanted):
                return asset
    raise NoMatchingAsset(patterns, release.asset_names)


def is_archive(name: str) -> bool:
    return name.lower().endswith(ARCHIVE_SUFFIXES)
