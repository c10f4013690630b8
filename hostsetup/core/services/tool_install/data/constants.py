"""
L0 Data — Module-level constants.

Pure data. No logic. No imports beyond stdlib.
"""

from __future__ import annotations

# Probes only run a version flag.
PROBE_TIMEOUT: int = 10

USER_AGENT = "hostsetup/0.1"

GITHUB_API = "https://api.github.com"

# Raw ``uname -m`` → canonical release-channel label.
#
# The canonical labels are Go-style (amd64/arm64), which is what
# dl.google.com and GoReleaser-built assets use. Vendors that publish
# with raw ``uname -m`` names declare an ``arch_map`` on the dependency.
_IARCH_MAP: dict[str, str] = {
    "x86_64": "amd64",
    "amd64": "amd64",
    "AMD64": "amd64",
    "aarch64": "arm64",
    "arm64": "arm64",
    "armv8l": "arm64",
}

SUPPORTED_ARCHITECTURES: frozenset[str] = frozenset(_IARCH_MAP.values())

# Distributions the installer accepts (os-release ID / ID_LIKE).
SUPPORTED_DISTROS: frozenset[str] = frozenset({"ubuntu", "debian"})

OS_RELEASE_PATH = "/etc/os-release"

ARCHIVE_SUFFIXES: tuple[str, ...] = (".tar.gz", ".tgz")
