"""
L3 Detection — Host preflight checks.

Run before anything is mutated: the installer must be root, on a
supported distribution, on a supported CPU.
"""

from __future__ import annotations

import logging
import os
from typing import Callable

from hostsetup.core.context import HostContext
from hostsetup.core.errors import PrivilegeError, UnsupportedPlatform
from hostsetup.core.services.tool_install.data.constants import (
    OS_RELEASE_PATH,
    SUPPORTED_DISTROS,
)
from hostsetup.core.services.tool_install.domain.architecture import resolve_architecture

logger = logging.getLogger(__name__)


def check_privileges(geteuid: Callable[[], int] = os.geteuid) -> None:
    """Raise ``PrivilegeError`` unless running as root."""
    if geteuid() != 0:
        raise PrivilegeError("This installer must be run as root or with sudo.")
    logger.info("Privilege check passed.")


def parse_os_release(text: str) -> dict[str, str]:
    """Parse ``/etc/os-release`` KEY=value lines (values may be quoted)."""
    fields: dict[str, str] = {}
    for line in text.splitlines():
        line = line.strip()
        if not line or line.startswith("#") or "=" not in line:
            continue
        key, _, value = line.partition("=")
        fields[key.strip()] = value.strip().strip("\"'")
    return fields


def check_distribution(ctx: HostContext) -> str:
    """Return the distribution's pretty name, or raise ``UnsupportedPlatform``."""
    path = ctx.paths(OS_RELEASE_PATH)
    try:
        fields = parse_os_release(path.read_text(encoding="utf-8"))
    except OSError as e:
        raise UnsupportedPlatform(f"Cannot read {OS_RELEASE_PATH}: {e}") from e

    ids = {fields.get("ID", "").lower(), *fields.get("ID_LIKE", "").lower().split()}
    if not ids & SUPPORTED_DISTROS:
        raise UnsupportedPlatform(
            f"Unsupported distribution '{fields.get('PRETTY_NAME', fields.get('ID', '?'))}'"
            f" — this installer targets Ubuntu/Debian."
        )
    name = fields.get("PRETTY_NAME") or fields.get("ID", "")
    logger.info("Operating system check passed (%s).", name)
    return name


def check_architecture(ctx: HostContext) -> str:
    """Return the canonical architecture label, or raise ``UnsupportedArchitecture``."""
    arch = resolve_architecture(ctx.machine())
    logger.info("Architecture check passed (%s).", arch)
    return arch
