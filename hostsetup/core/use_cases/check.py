"""
Check use case — validate hostsetup.yml and report what a run would do.

Read-only: probes every dependency and asks systemd for the service
state, but never installs, writes or restarts anything.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path

from hostsetup.core.config.loader import InstallerConfig, find_config_file, load_config
from hostsetup.core.context import HostContext
from hostsetup.core.errors import ConfigError
from hostsetup.core.services.provision.systemd import Systemd, detect_init_system
from hostsetup.core.services.tool_install.detection.tool_version import get_tool_version
from hostsetup.core.services.tool_install.orchestration.pipeline import DependencyPipeline


@dataclass
class DependencyStatus:
    name: str
    required: bool
    strategy: str
    installed: str | None
    minimum: str | None
    action: str
    reason: str

    def to_dict(self) -> dict:
        return {
            "name": self.name,
            "required": self.required,
            "strategy": self.strategy,
            "installed": self.installed,
            "minimum": self.minimum,
            "action": self.action,
            "reason": self.reason,
        }


@dataclass
class CheckResult:
    """Configuration validity plus a probe of the host."""

    valid: bool = False
    config_path: Path | None = None
    config: InstallerConfig | None = None
    dependencies: list[DependencyStatus] = field(default_factory=list)
    service_state: str | None = None
    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)

    @property
    def pending(self) -> list[DependencyStatus]:
        return [d for d in self.dependencies if d.action != "skip"]

    def to_dict(self) -> dict:
        return {
            "valid": self.valid,
            "config_path": str(self.config_path) if self.config_path else None,
            "errors": self.errors,
            "warnings": self.warnings,
            "dependencies": [d.to_dict() for d in self.dependencies],
            "service_state": self.service_state,
        }


def check_host(
    config_path: Path | None = None,
    *,
    ctx: HostContext | None = None,
) -> CheckResult:
    """Validate configuration and probe the host.

    Args:
        config_path: Optional explicit path to hostsetup.yml.
        ctx: Host resources; built from the config when omitted.

    Returns:
        CheckResult with validation status and per-dependency verdicts.
    """
    result = CheckResult()
    result.config_path = config_path or find_config_file()

    try:
        config = load_config(result.config_path, search=False)
    except ConfigError as e:
        result.errors.append(str(e))
        return result
    result.config = config
    result.valid = True

    if result.config_path is None:
        result.warnings.append("No hostsetup.yml found — using built-in defaults.")

    ctx = ctx or HostContext.from_config(config)

    # Newer-release checks would hit the network; the probe stays local.
    pipeline = DependencyPipeline(ctx, {}, latest_version=None)
    for dep in config.dependencies:
        installed = get_tool_version(ctx, dep)
        decision = pipeline.decide(dep, installed)
        result.dependencies.append(DependencyStatus(
            name=dep.name,
            required=dep.required,
            strategy=dep.strategy.value,
            installed=installed,
            minimum=dep.minimum_version,
            action=decision.action,
            reason=decision.reason,
        ))

    if detect_init_system(ctx) == "systemd":
        result.service_state = Systemd(ctx).active_state(f"{config.service.name}.service")
    else:
        result.warnings.append("systemd not detected — the service cannot be provisioned.")

    return result
