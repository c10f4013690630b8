"""
Service identity — which user and group the application runs as.

The invoking (sudo) user when there is one; otherwise a dedicated
system account, created on demand.
"""

from __future__ import annotations

import logging
import os
from typing import Mapping

from hostsetup.core.context import HostContext

logger = logging.getLogger(__name__)


def _invoking_user(ctx: HostContext, environ: Mapping[str, str]) -> str:
    user = environ.get("SUDO_USER", "").strip()
    if user:
        return user
    result = ctx.runner(["logname"], timeout=ctx.timeout)
    if result.get("ok"):
        return (result.get("stdout") or "").strip()
    return ""


def ensure_system_user(ctx: HostContext, name: str) -> bool:
    """Create ``name`` as a system account unless it exists.

    Returns:
        True if the account exists afterwards. A failed ``useradd`` is
        logged and tolerated; systemd reports the bad user at start.
    """
    if ctx.runner(["id", "-u", name], timeout=ctx.timeout).get("ok"):
        return True
    logger.info("Creating system user '%s'", name)
    result = ctx.runner(
        ["useradd", "-r", "-m", "-s", "/bin/false", name],
        timeout=ctx.timeout,
    )
    if not result.get("ok"):
        logger.warning("Could not create user '%s': %s", name,
                       (result.get("stderr") or result.get("error") or "").strip())
        return False
    return True


def resolve_service_identity(
    ctx: HostContext,
    *,
    fallback_user: str,
    environ: Mapping[str, str] | None = None,
) -> tuple[str, str]:
    """Return ``(user, group)`` for the service."""
    env = os.environ if environ is None else environ
    user = _invoking_user(ctx, env)

    if not user or user == "root":
        ensure_system_user(ctx, fallback_user)
        logger.info("Service will run as dedicated user '%s'", fallback_user)
        return fallback_user, fallback_user

    result = ctx.runner(["id", "-gn", user], timeout=ctx.timeout)
    group = (result.get("stdout") or "").strip() if result.get("ok") else ""
    group = group or user
    logger.info("Service will run as user '%s', group '%s'", user, group)
    return user, group
