"""
systemd control — the supervision-manager operations the installer uses.

Thin wrapper over ``systemctl`` / ``journalctl`` through the host runner.
Every method returns the runner's result dict; nothing here raises.
"""

from __future__ import annotations

import logging

from hostsetup.core.context import HostContext

logger = logging.getLogger(__name__)


def detect_init_system(ctx: HostContext) -> str:
    """Detect the init system (systemd or unknown)."""
    if ctx.paths("/run/systemd/system").exists():
        return "systemd"
    return "unknown"


class Systemd:
    """``systemctl`` verbs against a single host."""

    def __init__(self, ctx: HostContext):
        self._ctx = ctx

    def _systemctl(self, *args: str) -> dict:
        return self._ctx.runner(["systemctl", *args], timeout=self._ctx.timeout)

    def daemon_reload(self) -> dict:
        return self._systemctl("daemon-reload")

    def enable(self, unit: str) -> dict:
        return self._systemctl("enable", unit)

    def start(self, unit: str) -> dict:
        return self._systemctl("start", unit)

    def restart(self, unit: str) -> dict:
        return self._systemctl("restart", unit)

    def reload(self, unit: str) -> dict:
        return self._systemctl("reload", unit)

    def active_state(self, unit: str) -> str:
        """``active``, ``activating``, ``inactive``, ``failed``, ...

        ``systemctl is-active`` exits non-zero for anything but active,
        so the state is read from stdout regardless of the exit code.
        """
        result = self._systemctl("is-active", unit)
        state = (result.get("stdout") or "").strip()
        return state or ("active" if result.get("ok") else "unknown")

    def is_active(self, unit: str) -> bool:
        return self.active_state(unit) == "active"

    def journal_tail(self, unit: str, lines: int = 20) -> list[str]:
        result = self._ctx.runner(
            ["journalctl", "-u", unit, "-n", str(lines), "--no-pager"],
            timeout=self._ctx.timeout,
        )
        text = result.get("stdout") or result.get("stderr") or result.get("error") or ""
        return text.strip().splitlines()[-lines:]
