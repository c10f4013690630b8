"""
L5 Orchestration — Dependency pipeline.

Drives each dependency, strictly one after another, through::

    unchecked → probed → satisfied                      (terminal)
                       ↘ needs_install → installed → verified
    unchecked → needs_install        (command absent / probe error)
    any install failure → failed

A failed *required* dependency aborts the run: later dependencies are
not attempted, earlier ones are left as installed. A failed optional
dependency is a warning. Nothing is rolled back; a rerun re-probes and
finds completed work already satisfied.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Callable, Mapping

from hostsetup.core.context import HostContext
from hostsetup.core.errors import (
    InstallerError,
    ParseError,
    ReleaseLookupError,
    UnsupportedPlatform,
)
from hostsetup.core.models.dependency import (
    Dependency,
    DependencyState,
    InstallDecision,
    InstallStrategy,
)
from hostsetup.core.services.tool_install.detection.tool_version import get_tool_version
from hostsetup.core.services.tool_install.domain.version import (
    compare_versions,
    is_newer,
    parse_version,
)

logger = logging.getLogger(__name__)


@dataclass
class DependencyOutcome:
    """What happened to one dependency."""

    name: str
    required: bool = True
    history: list[DependencyState] = field(default_factory=lambda: [DependencyState.UNCHECKED])
    installed_version: str | None = None
    decision: InstallDecision | None = None
    final_version: str | None = None
    detail: str = ""
    error: str | None = None
    fatal: bool = False

    @property
    def state(self) -> DependencyState:
        return self.history[-1]

    def advance(self, state: DependencyState) -> None:
        self.history.append(state)

    def to_dict(self) -> dict:
        return {
            "name": self.name,
            "required": self.required,
            "state": self.state.value,
            "history": [s.value for s in self.history],
            "installed_version": self.installed_version,
            "action": self.decision.action if self.decision else None,
            "reason": self.decision.reason if self.decision else "",
            "final_version": self.final_version,
            "detail": self.detail,
            "error": self.error,
        }


@dataclass
class PipelineReport:
    """Result of running the pipeline over a dependency list."""

    outcomes: list[DependencyOutcome] = field(default_factory=list)
    aborted: bool = False
    error: str | None = None

    @property
    def ok(self) -> bool:
        return not self.aborted

    def get(self, name: str) -> DependencyOutcome | None:
        for outcome in self.outcomes:
            if outcome.name == name:
                return outcome
        return None

    @property
    def warnings(self) -> list[DependencyOutcome]:
        return [o for o in self.outcomes if o.state == DependencyState.FAILED and not o.fatal]

    def to_dict(self) -> dict:
        return {
            "ok": self.ok,
            "aborted": self.aborted,
            "error": self.error,
            "dependencies": [o.to_dict() for o in self.outcomes],
        }


class DependencyPipeline:
    """Probe → decide → install → verify, one dependency at a time.

    Args:
        ctx: Host resources (probes run through ``ctx.runner``).
        strategies: Handler per install strategy.
        latest_version: Looks up the newest published version for
            ``track_latest`` dependencies; None disables that check.
    """

    def __init__(
        self,
        ctx: HostContext,
        strategies: Mapping[InstallStrategy, Callable[[Dependency], str]],
        *,
        latest_version: Callable[[Dependency], str | None] | None = None,
    ):
        self._ctx = ctx
        self._strategies = strategies
        self._latest_version = latest_version

    # ── Decision ─────────────────────────────────────────────────

    def decide(self, dep: Dependency, installed: str | None) -> InstallDecision:
        """Decide skip / install / upgrade for a probed dependency."""
        if installed is None:
            return InstallDecision(dependency=dep.name, action="install", reason="not installed")

        try:
            parse_version(installed)
        except ParseError:
            return InstallDecision(
                dependency=dep.name, action="install",
                reason=f"unparseable version {installed!r}",
            )

        if dep.minimum_version and compare_versions(installed, dep.minimum_version) == "unsatisfied":
            return InstallDecision(
                dependency=dep.name, action="upgrade",
                reason=f"{installed} < required {dep.minimum_version}",
            )

        if dep.track_latest and self._latest_version is not None:
            try:
                latest = self._latest_version(dep)
            except ReleaseLookupError as e:
                logger.warning("[%s] cannot check for a newer release (%s) — keeping %s",
                               dep.name, e, installed)
                latest = None
            if latest:
                try:
                    newer = is_newer(latest, installed)
                except ParseError:
                    newer = False
                if newer:
                    return InstallDecision(
                        dependency=dep.name, action="upgrade",
                        reason=f"{installed} < latest release {latest}",
                    )

        reason = f"{installed} satisfies >= {dep.minimum_version}" if dep.minimum_version else f"{installed} present"
        return InstallDecision(dependency=dep.name, action="skip", reason=reason)

    # ── Execution ────────────────────────────────────────────────

    def run_one(self, dep: Dependency) -> DependencyOutcome:
        """Drive a single dependency to a terminal state.

        Never raises ``InstallerError``: failures are recorded on the
        outcome, with ``fatal`` set when the run must stop.
        """
        outcome = DependencyOutcome(name=dep.name, required=dep.required)
        logger.info("[%s] checking installed version", dep.name)

        installed = get_tool_version(self._ctx, dep)
        if installed is not None:
            outcome.advance(DependencyState.PROBED)
            outcome.installed_version = installed
            logger.info("[%s] found version %s", dep.name, installed)

        decision = self.decide(dep, installed)
        outcome.decision = decision
        if not decision.mutates:
            outcome.advance(DependencyState.SATISFIED)
            logger.info("[%s] up to date (%s)", dep.name, decision.reason)
            return outcome

        outcome.advance(DependencyState.NEEDS_INSTALL)
        logger.info("[%s] %s needed: %s (strategy: %s)",
                    dep.name, decision.action, decision.reason, dep.strategy.value)

        handler = self._strategies.get(dep.strategy)
        try:
            if handler is None:
                raise InstallerError(f"No handler for strategy '{dep.strategy.value}'")
            outcome.detail = handler(dep) or ""
        except UnsupportedPlatform as e:
            return self._fail(outcome, dep, str(e), fatal=True)
        except (InstallerError, OSError) as e:
            return self._fail(outcome, dep, str(e), fatal=dep.required)

        outcome.advance(DependencyState.INSTALLED)
        logger.info("[%s] installed %s", dep.name, outcome.detail)
        self._verify(dep, outcome)
        return outcome

    def _fail(
        self,
        outcome: DependencyOutcome,
        dep: Dependency,
        message: str,
        *,
        fatal: bool,
    ) -> DependencyOutcome:
        outcome.advance(DependencyState.FAILED)
        outcome.error = message
        outcome.fatal = fatal
        if fatal:
            logger.error("[%s] installation failed: %s", dep.name, message)
        else:
            logger.warning("[%s] optional installation failed, continuing: %s", dep.name, message)
        return outcome

    def _verify(self, dep: Dependency, outcome: DependencyOutcome) -> None:
        version = get_tool_version(self._ctx, dep)
        outcome.final_version = version
        if version is None:
            logger.warning("[%s] verification failed: no version reported after install", dep.name)
            return
        if dep.minimum_version and compare_versions(version, dep.minimum_version) == "unsatisfied":
            logger.warning("[%s] verification failed: %s still below %s",
                           dep.name, version, dep.minimum_version)
            return
        outcome.advance(DependencyState.VERIFIED)
        logger.info("[%s] verified version %s", dep.name, version)

    def run(self, dependencies: list[Dependency]) -> PipelineReport:
        """Run every dependency in order, stopping at the first fatal failure."""
        report = PipelineReport()
        for dep in dependencies:
            outcome = self.run_one(dep)
            report.outcomes.append(outcome)
            if outcome.fatal:
                report.aborted = True
                report.error = f"{dep.name}: {outcome.error}"
                remaining = [d.name for d in dependencies[len(report.outcomes):]]
                if remaining:
                    logger.error("Aborting — not attempted: %s", ", ".join(remaining))
                break
        return report
