"""
Bootstrap use case — turn a fresh host into a running CaptainCore server.

This is the top-level orchestrator behind ``hostsetup`` / ``hostsetup run``:

    1. preflight     root, supported distribution, supported CPU
    2. dependencies  probe → decide → install → verify, in order
    3. service       systemd unit for the application, started
    4. proxy         Caddyfile routing the domain to the service
    5. summary       status commands and the manual follow-ups

Phases 1–3 are fatal on failure; the proxy phase only warns. Nothing
is rolled back: rerunning is the recovery path, and a rerun on a
healthy host changes nothing.
"""

from __future__ import annotations

import logging
import os
import socket
from dataclasses import dataclass, field
from typing import Callable, Mapping

from hostsetup.core.config.loader import InstallerConfig
from hostsetup.core.context import HostContext
from hostsetup.core.errors import InstallerError, InstallFailure
from hostsetup.core.models.dependency import DependencyState
from hostsetup.core.models.service import ProxyRoute, ServiceSpec
from hostsetup.core.services.provision.identity import resolve_service_identity
from hostsetup.core.services.provision.provisioner import ProvisionResult, ServiceProvisioner
from hostsetup.core.services.tool_install.detection.platform import (
    check_architecture,
    check_distribution,
    check_privileges,
)
from hostsetup.core.services.tool_install.detection.tool_version import get_tool_version
from hostsetup.core.services.tool_install.execution.strategies import InstallStrategies
from hostsetup.core.services.tool_install.orchestration.pipeline import (
    DependencyPipeline,
    PipelineReport,
)

logger = logging.getLogger(__name__)

DOMAIN_ENV = "HOSTSETUP_DOMAIN"
PROXY_DEPENDENCY = "caddy"

_PRESENT = {DependencyState.SATISFIED, DependencyState.INSTALLED, DependencyState.VERIFIED}

# Suggested crontab for the service user, printed in the summary.
CRON_SUGGESTIONS = (
    ("Monitor production sites every 10 minutes",
     "*/10 * * * * captaincore monitor @production --fleet"),
    ("Scan for errors on production sites nightly",
     "45 18 * * * captaincore scan-errors @production --fleet"),
    ("Weekly updates for production sites tagged updates-on",
     "15 09 * * 3 captaincore update @production.updates-on --fleet"),
    ("Quarterly updates for staging sites tagged updates-on",
     "15 00 1 */3 * captaincore update @staging.updates-on --fleet"),
    ("Nightly backups for production sites",
     "03 00 * * * captaincore backup generate @production --fleet"),
    ("Nightly quicksaves for all sites",
     "01 00 * * * captaincore quicksave generate @all --fleet"),
)


@dataclass
class BootstrapResult:
    """Result of a bootstrap (or of one of its partial runs)."""

    distribution: str | None = None
    architecture: str | None = None
    pipeline: PipelineReport | None = None
    service: ProvisionResult | None = None
    service_user: str | None = None
    domain: str | None = None
    proxy_applied: bool | None = None
    warnings: list[str] = field(default_factory=list)
    error: str | None = None
    failed_phase: str | None = None

    @property
    def ok(self) -> bool:
        return self.error is None

    def fail(self, phase: str, message: str) -> BootstrapResult:
        self.failed_phase = phase
        self.error = message
        logger.error("%s failed: %s", phase.capitalize(), message)
        return self

    def to_dict(self) -> dict:
        return {
            "ok": self.ok,
            "error": self.error,
            "failed_phase": self.failed_phase,
            "distribution": self.distribution,
            "architecture": self.architecture,
            "dependencies": self.pipeline.to_dict() if self.pipeline else None,
            "service": self.service.to_dict() if self.service else None,
            "service_user": self.service_user,
            "domain": self.domain,
            "proxy_applied": self.proxy_applied,
            "warnings": self.warnings,
        }


# ── Inputs ──────────────────────────────────────────────────────


def default_domain(fqdn: Callable[[], str] = socket.getfqdn) -> str:
    host = (fqdn() or "").strip()
    return f"captaincore.{host or 'yourdomain.com'}"


def resolve_domain(
    config: InstallerConfig,
    *,
    cli_domain: str | None = None,
    environ: Mapping[str, str] | None = None,
    prompt: Callable[[str, str], str] | None = None,
    fqdn: Callable[[], str] = socket.getfqdn,
) -> str:
    """Pick the public hostname for the proxy route.

    ``--domain`` > ``HOSTSETUP_DOMAIN`` > config > interactive prompt
    > ``captaincore.<fqdn>``. ``prompt`` is only given when a terminal
    is attached; unattended runs take the default.
    """
    env = os.environ if environ is None else environ
    for candidate in (cli_domain, env.get(DOMAIN_ENV), config.domain):
        if candidate and candidate.strip():
            return candidate.strip()

    fallback = default_domain(fqdn)
    if prompt is not None:
        answer = prompt("Public domain name for CaptainCore", fallback)
        if answer and answer.strip():
            return answer.strip()
    return fallback


# ── Phases ──────────────────────────────────────────────────────


def run_preflight(
    ctx: HostContext,
    result: BootstrapResult,
    *,
    geteuid: Callable[[], int] = os.geteuid,
) -> bool:
    logger.info("=== Preflight checks ===")
    try:
        check_privileges(geteuid)
        result.distribution = check_distribution(ctx)
        result.architecture = check_architecture(ctx)
    except InstallerError as e:
        result.fail("preflight", str(e))
        return False
    return True


def install_dependencies(
    ctx: HostContext,
    config: InstallerConfig,
    result: BootstrapResult,
    *,
    strategies: InstallStrategies | None = None,
) -> bool:
    logger.info("=== Installing dependencies ===")
    strategies = strategies or InstallStrategies(ctx)
    pipeline = DependencyPipeline(
        ctx, strategies.handlers(), latest_version=strategies.latest_version,
    )
    report = pipeline.run(config.dependencies)
    result.pipeline = report

    for outcome in report.warnings:
        result.warnings.append(f"{outcome.name}: {outcome.error}")
    if report.aborted:
        result.fail("dependencies", report.error or "dependency installation failed")
        return False
    return True


def build_service_spec(config: InstallerConfig, user: str, group: str) -> ServiceSpec:
    svc = config.service
    return ServiceSpec(
        name=svc.name,
        binary_path=svc.binary,
        args=list(svc.args),
        user=user,
        group=group,
        description=svc.description,
        documentation=svc.documentation,
        capabilities=list(svc.capabilities),
        restart=svc.restart,
    )


def provision_service(
    ctx: HostContext,
    config: InstallerConfig,
    result: BootstrapResult,
    provisioner: ServiceProvisioner,
    *,
    environ: Mapping[str, str] | None = None,
) -> bool:
    logger.info("=== Configuring the %s service ===", config.service.name)
    try:
        if not ctx.paths(config.service.binary).is_file():
            raise InstallFailure(
                f"{config.service.binary} is missing — run 'hostsetup install' first"
            )
        user, group = resolve_service_identity(
            ctx, fallback_user=config.service.fallback_user, environ=environ,
        )
        result.service_user = user
        result.service = provisioner.provision(build_service_spec(config, user, group))
    except (InstallerError, OSError) as e:
        result.fail("service", str(e))
        return False
    return True


def proxy_available(
    ctx: HostContext,
    config: InstallerConfig,
    report: PipelineReport | None = None,
) -> bool:
    """True when the reverse proxy is installed on the host."""
    if report is not None:
        outcome = report.get(PROXY_DEPENDENCY)
        if outcome is not None:
            return outcome.state in _PRESENT
    dep = config.dependency(PROXY_DEPENDENCY)
    if dep is not None:
        return get_tool_version(ctx, dep) is not None
    return ctx.which(config.proxy.service) is not None


def configure_proxy(
    ctx: HostContext,
    config: InstallerConfig,
    result: BootstrapResult,
    provisioner: ServiceProvisioner,
    *,
    domain: str,
) -> None:
    logger.info("=== Configuring the reverse proxy ===")
    if not proxy_available(ctx, config, result.pipeline):
        logger.info("Skipping proxy configuration: %s is not installed.", config.proxy.service)
        result.warnings.append(f"{config.proxy.service} not installed, proxy not configured")
        return

    result.domain = domain
    logger.info("Using domain: %s", domain)
    route = ProxyRoute(hostname=domain, backend=config.backend)
    result.proxy_applied = provisioner.apply_route(
        route, config_path=config.proxy.config_path, service=config.proxy.service,
    )
    if not result.proxy_applied:
        result.warnings.append(f"{config.proxy.service} could not be configured")


def log_summary(config: InstallerConfig, result: BootstrapResult) -> None:
    """Log what was done and what the operator still has to do by hand."""
    unit = f"{config.service.name}.service"
    proxy_unit = f"{config.proxy.service}.service"
    logger.info("-" * 69)
    if not result.ok:
        logger.error("Setup stopped during %s: %s", result.failed_phase, result.error)
        logger.info("Fix the problem above and rerun; completed steps are skipped.")
        return

    logger.info("CaptainCore setup finished.")
    logger.info(" - Service status:  systemctl status %s", unit)
    if result.proxy_applied:
        logger.info(" - Proxy status:    systemctl status %s", proxy_unit)
    logger.info(" - Logs:            journalctl -u %s", unit)
    for warning in result.warnings:
        logger.warning(" - %s", warning)

    logger.info("Next steps:")
    logger.info(" 1. Install the CaptainCore Manager plugin on a WordPress site "
                "(https://github.com/CaptainCore/captaincore-manager/releases) and connect it to "
                "%s", f"https://{result.domain}" if result.domain else f"http://{config.backend}")
    logger.info(" 2. Add cron jobs for the '%s' user (sudo crontab -u %s -e):",
                result.service_user or config.service.fallback_user,
                result.service_user or config.service.fallback_user)
    for description, entry in CRON_SUGGESTIONS:
        logger.info("      # %s", description)
        logger.info("      %s", entry)


# ── Entry points ────────────────────────────────────────────────


def run_bootstrap(
    config: InstallerConfig,
    *,
    ctx: HostContext | None = None,
    domain: str | None = None,
    environ: Mapping[str, str] | None = None,
    prompt: Callable[[str, str], str] | None = None,
    geteuid: Callable[[], int] = os.geteuid,
    strategies: InstallStrategies | None = None,
    provisioner: ServiceProvisioner | None = None,
) -> BootstrapResult:
    """Run every phase; stop at the first fatal failure."""
    ctx = ctx or HostContext.from_config(config)
    provisioner = provisioner or ServiceProvisioner(
        ctx, start_timeout=config.service.start_timeout,
    )
    result = BootstrapResult()

    if (
        run_preflight(ctx, result, geteuid=geteuid)
        and install_dependencies(ctx, config, result, strategies=strategies)
        and provision_service(ctx, config, result, provisioner, environ=environ)
    ):
        hostname = resolve_domain(config, cli_domain=domain, environ=environ, prompt=prompt)
        configure_proxy(ctx, config, result, provisioner, domain=hostname)

    log_summary(config, result)
    return result


def run_install(
    config: InstallerConfig,
    *,
    ctx: HostContext | None = None,
    geteuid: Callable[[], int] = os.geteuid,
    strategies: InstallStrategies | None = None,
) -> BootstrapResult:
    """Preflight and dependencies only."""
    ctx = ctx or HostContext.from_config(config)
    result = BootstrapResult()
    if run_preflight(ctx, result, geteuid=geteuid):
        install_dependencies(ctx, config, result, strategies=strategies)
    return result


def run_provision(
    config: InstallerConfig,
    *,
    ctx: HostContext | None = None,
    domain: str | None = None,
    environ: Mapping[str, str] | None = None,
    prompt: Callable[[str, str], str] | None = None,
    geteuid: Callable[[], int] = os.geteuid,
    provisioner: ServiceProvisioner | None = None,
) -> BootstrapResult:
    """Service and proxy only, against already-installed dependencies."""
    ctx = ctx or HostContext.from_config(config)
    provisioner = provisioner or ServiceProvisioner(
        ctx, start_timeout=config.service.start_timeout,
    )
    result = BootstrapResult()
    try:
        check_privileges(geteuid)
    except InstallerError as e:
        return result.fail("preflight", str(e))

    if provision_service(ctx, config, result, provisioner, environ=environ):
        hostname = resolve_domain(config, cli_domain=domain, environ=environ, prompt=prompt)
        configure_proxy(ctx, config, result, provisioner, domain=hostname)
    return result
