"""
L3 Detection — Tool version probing.

Read-only: runs a dependency's version command and extracts the version
with its regex. Never installs anything.
"""

from __future__ import annotations

import logging
import re

from hostsetup.core.context import HostContext
from hostsetup.core.models.dependency import Dependency
from hostsetup.core.services.tool_install.data.constants import PROBE_TIMEOUT

logger = logging.getLogger(__name__)


def resolve_probe_command(ctx: HostContext, dep: Dependency) -> list[str] | None:
    """The command to run for ``dep``, or None if the tool is absent.

    A declared ``binary_path`` wins over ``PATH`` so freshly installed
    tools (``/usr/local/go/bin/go``) are found before the login shell
    knows about them.
    """
    if not dep.probe:
        return None
    if dep.binary_path:
        real = ctx.paths(dep.binary_path)
        if real.is_file():
            return [str(real), *dep.probe[1:]]
    found = ctx.which(dep.probe[0])
    if not found:
        return None
    return [found, *dep.probe[1:]]


def get_tool_version(ctx: HostContext, dep: Dependency) -> str | None:
    """Get the installed version of a dependency.

    Returns:
        Version string (e.g. ``"1.21.6"``) or ``None`` if the tool is not
        installed, its probe fails, or the output has no version.
    """
    cmd = resolve_probe_command(ctx, dep)
    if cmd is None:
        logger.debug("%s: not found", dep.name)
        return None

    result = ctx.runner(cmd, timeout=PROBE_TIMEOUT)
    if not result.get("ok"):
        logger.debug("%s: probe failed: %s", dep.name, result.get("error"))
        return None

    # some tools print their version on stderr
    output = (result.get("stdout") or "") + (result.get("stderr") or "")
    match = re.search(dep.version_pattern, output)
    if not match:
        logger.debug("%s: no version in probe output %r", dep.name, output[:200])
        return None
    return match.group(1)
