"""
Service provisioner — puts the installed application under systemd and
routes a public hostname to it through Caddy.

Both steps regenerate their file from the model on every run. Unchanged
content means an unchanged file and, for a running service, no restart.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Callable

from hostsetup.core.context import HostContext
from hostsetup.core.errors import ServiceStartFailure, UnsupportedPlatform
from hostsetup.core.models.service import ProxyRoute, ServiceSpec
from hostsetup.core.services.provision.systemd import Systemd, detect_init_system
from hostsetup.core.services.provision.templates import render_caddyfile, render_unit

logger = logging.getLogger(__name__)

UNIT_DIR = "/etc/systemd/system"
JOURNAL_LINES = 20


@dataclass
class ProvisionResult:
    """Outcome of provisioning a service."""

    service: str
    unit_path: str
    unit_changed: bool
    action: str          # started | restarted | already-running
    active: bool = True

    def to_dict(self) -> dict:
        return {
            "service": self.service,
            "unit_path": self.unit_path,
            "unit_changed": self.unit_changed,
            "action": self.action,
            "active": self.active,
        }


def _write_if_changed(path: Path, content: str) -> bool:
    """Write ``content`` unless the file already holds exactly that."""
    if path.is_file() and path.read_text(encoding="utf-8", errors="replace") == content:
        return False
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(content, encoding="utf-8")
    return True


class ServiceProvisioner:
    """Applies ``ServiceSpec`` and ``ProxyRoute`` to the host.

    Args:
        ctx: Host resources.
        start_timeout: Bound on waiting for the service to become active.
        poll_interval: Seconds between ``is-active`` checks.
        sleep / clock: Injected for tests.
    """

    def __init__(
        self,
        ctx: HostContext,
        *,
        systemd: Systemd | None = None,
        unit_dir: str = UNIT_DIR,
        start_timeout: float | None = None,
        poll_interval: float = 1.0,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], float] = time.monotonic,
    ):
        self._ctx = ctx
        self._systemd = systemd or Systemd(ctx)
        self._unit_dir = unit_dir
        self._start_timeout = ctx.timeout if start_timeout is None else start_timeout
        self._poll_interval = poll_interval
        self._sleep = sleep
        self._clock = clock

    # ── Service ──────────────────────────────────────────────────

    def provision(self, spec: ServiceSpec) -> ProvisionResult:
        """Write the unit, enable it and make sure the service runs.

        Raises:
            UnsupportedPlatform: the host does not run systemd.
            ServiceStartFailure: the service did not become active in
                time; carries the last journal lines.
        """
        if detect_init_system(self._ctx) != "systemd":
            raise UnsupportedPlatform("systemd is not running on this host")

        unit = spec.unit_name
        unit_path = f"{self._unit_dir.rstrip('/')}/{unit}"
        logger.info("Writing systemd unit %s (User=%s Group=%s)", unit_path, spec.user, spec.group)
        changed = _write_if_changed(self._ctx.paths(unit_path), render_unit(spec))
        logger.info("Unit file %s", "updated" if changed else "unchanged")

        logger.info("Reloading systemd configuration")
        self._check(self._systemd.daemon_reload(), spec.name, "daemon-reload")
        logger.info("Enabling %s at boot", unit)
        self._check(self._systemd.enable(unit), spec.name, "enable")

        if self._systemd.is_active(unit):
            if not changed:
                logger.info("%s already running with this unit — nothing to do", unit)
                return ProvisionResult(spec.name, unit_path, changed, "already-running")
            logger.info("Restarting %s to pick up the new unit", unit)
            self._check(self._systemd.restart(unit), spec.name, "restart")
            action = "restarted"
        else:
            logger.info("Starting %s", unit)
            self._check(self._systemd.start(unit), spec.name, "start")
            action = "started"

        self._wait_active(spec.name, unit)
        logger.info("%s is running", unit)
        return ProvisionResult(spec.name, unit_path, changed, action)

    def _check(self, result: dict, name: str, verb: str) -> None:
        if result.get("ok"):
            return
        logger.error("systemctl %s %s failed: %s", verb, name, result.get("error"))
        self._raise_start_failure(name)

    def _wait_active(self, name: str, unit: str) -> None:
        deadline = self._clock() + self._start_timeout
        while True:
            state = self._systemd.active_state(unit)
            if state == "active":
                return
            if state == "failed" or self._clock() >= deadline:
                logger.error("%s did not become active (state: %s)", unit, state)
                self._raise_start_failure(name)
            self._sleep(self._poll_interval)

    def _raise_start_failure(self, name: str) -> None:
        tail = self._systemd.journal_tail(f"{name}.service", JOURNAL_LINES)
        for line in tail:
            logger.error("  journal: %s", line)
        raise ServiceStartFailure(name, tail)

    # ── Reverse proxy ────────────────────────────────────────────

    def apply_route(
        self,
        route: ProxyRoute,
        *,
        config_path: str,
        service: str = "caddy",
    ) -> bool:
        """Write the proxy config and reload (or start) the proxy.

        A previous config with different content is copied to
        ``<config>.bak.<timestamp>`` first.

        Returns:
            True once the proxy runs with the new config. Failures are
            logged and reported as False, never raised.
        """
        target = self._ctx.paths(config_path)
        content = render_caddyfile(route)

        logger.info("Writing proxy route %s → %s to %s", route.hostname, route.backend, config_path)
        try:
            if target.is_file():
                previous = target.read_text(encoding="utf-8", errors="replace")
                if previous != content:
                    backup = f"{config_path}.bak.{time.strftime('%Y%m%d_%H%M%S')}"
                    self._ctx.paths(backup).write_text(previous, encoding="utf-8")
                    logger.warning("Replacing existing %s, previous version saved to %s",
                                   config_path, backup)
            _write_if_changed(target, content)
        except OSError as e:
            logger.error("Could not write %s: %s", config_path, e)
            return False

        unit = f"{service}.service"
        logger.info("Reloading %s", service)
        if self._systemd.reload(unit).get("ok"):
            logger.info("%s reloaded", service)
            return True

        logger.warning("Reload of %s failed — trying to (re)start it", service)
        fallback = self._systemd.restart if self._systemd.is_active(unit) else self._systemd.start
        outcome = fallback(unit)
        if outcome.get("ok"):
            logger.info("%s running with the new configuration", service)
            return True

        error = (outcome.get("stderr") or outcome.get("error") or "").strip() or "did not start"
        logger.error("Could not apply proxy configuration: %s. Check 'systemctl status %s' "
                     "and 'journalctl -u %s'.", error, service, service)
        return False
