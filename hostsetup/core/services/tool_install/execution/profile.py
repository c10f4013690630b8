"""
L4 Execution — Login-shell PATH wiring.

Writes an ``/etc/profile.d`` snippet so tools installed outside the
default PATH (``/usr/local/go/bin``) are found by later shells.
"""

from __future__ import annotations

import logging

from hostsetup.core.context import HostContext

logger = logging.getLogger(__name__)


def render_profile(path_entries: list[str], env: dict[str, str] | None = None) -> str:
    lines = ["# Managed by hostsetup"]
    # variables first so PATH entries can reference them ($GOPATH/bin)
    lines += [f'export {name}="{value}"' for name, value in (env or {}).items()]
    lines += [f'export PATH="$PATH:{entry}"' for entry in path_entries]
    return "\n".join(lines) + "\n"


def ensure_profile_path(
    ctx: HostContext,
    script: str,
    path_entries: list[str],
    env: dict[str, str] | None = None,
) -> bool:
    """Write ``script`` unless it already exports every entry and variable.

    Returns:
        True if the file was (re)written.
    """
    content = render_profile(path_entries, env)
    target = ctx.paths(script)
    if target.is_file():
        existing = target.read_text(encoding="utf-8", errors="replace")
        wanted = list(path_entries)
        wanted += [f"export {name}=" for name in (env or {})]
        if all(item in existing for item in wanted):
            logger.info("PATH already configured in %s", script)
            return False

    target.parent.mkdir(parents=True, exist_ok=True)
    target.write_text(content, encoding="utf-8")
    target.chmod(0o644)
    logger.info("Wrote %s, new login shells will have %s on PATH",
                script, ", ".join(path_entries))
    return True
