"""
Tests for the dependency pipeline — probe, decide, install, verify.
"""

from unittest.mock import MagicMock

import pytest

from hostsetup.core.errors import InstallFailure, NetworkError, UnsupportedArchitecture
from hostsetup.core.models.dependency import Dependency, DependencyState, InstallStrategy
from hostsetup.core.services.tool_install.data.recipes import default_dependencies
from hostsetup.core.services.tool_install.detection.tool_version import get_tool_version
from hostsetup.core.services.tool_install.execution.strategies import InstallStrategies
from hostsetup.core.services.tool_install.orchestration.pipeline import DependencyPipeline
from tests.fakes import fail, make_tarball

GO_URL = "https://dl.google.com/go/go1.21.6.linux-amd64.tar.gz"
RELEASE_API = "https://api.github.com/repos/CaptainCore/captaincore/releases/latest"
S = DependencyState


def _recipe(name: str) -> Dependency:
    return next(d for d in default_dependencies() if d.name == name)


def _mock_handlers():
    return {strategy: MagicMock(return_value="done") for strategy in InstallStrategy}


def _go_tarball(version: str) -> bytes:
    return make_tarball({"go/bin/go": f"go version go{version} linux/amd64"})


def _publish(host, tag: str, asset_name: str = "captaincore_{v}_linux_amd64.tar.gz"):
    name = asset_name.format(v=tag.lstrip("v"))
    url = f"https://github.test/download/{tag}/{name}"
    host.json[RELEASE_API] = {
        "tag_name": tag,
        "assets": [
            {"name": name, "browser_download_url": url},
            {"name": "checksums.txt", "browser_download_url": "https://github.test/sums"},
        ],
    }
    host.files[url] = make_tarball({"captaincore": f"CaptainCore {tag}"})
    return url


class TestProbe:
    def test_binary_path_preferred_over_path(self, host, ctx, sandbox):
        host.install_fake("/usr/local/go/bin/go", "go version go1.21.6 linux/amd64")
        host.programs["go"] = "/usr/bin/go"
        assert get_tool_version(ctx, _recipe("go")) == "1.21.6"
        assert host.calls == [[str(sandbox / "usr/local/go/bin/go"), "version"]]

    def test_falls_back_to_path(self, host, ctx):
        host.programs["jq"] = "/usr/bin/jq"
        host.on("/usr/bin/jq", result={"ok": True, "stdout": "jq-1.6\n", "stderr": ""})
        assert get_tool_version(ctx, _recipe("jq")) == "1.6"

    def test_absent(self, ctx):
        assert get_tool_version(ctx, _recipe("git")) is None

    def test_failed_probe(self, host, ctx):
        host.programs["git"] = "/usr/bin/git"
        host.on("git", result=fail("segfault"))
        assert get_tool_version(ctx, _recipe("git")) is None

    def test_version_on_stderr(self, host, ctx):
        host.programs["caddy"] = "/usr/bin/caddy"
        host.on("caddy", result={"ok": True, "stdout": "", "stderr": "v2.7.6 h1:abc="})
        assert get_tool_version(ctx, _recipe("caddy")) == "2.7.6"


class TestDecide:
    @pytest.fixture
    def pipeline(self, ctx):
        return DependencyPipeline(ctx, _mock_handlers())

    def test_not_installed(self, pipeline):
        assert pipeline.decide(_recipe("go"), None).action == "install"

    def test_below_minimum(self, pipeline):
        decision = pipeline.decide(_recipe("go"), "1.10.0")
        assert decision.action == "upgrade"
        assert "1.18" in decision.reason

    def test_satisfied(self, pipeline):
        assert pipeline.decide(_recipe("go"), "1.18").action == "skip"

    def test_unparseable_installed_version(self, pipeline):
        assert pipeline.decide(_recipe("go"), "1.x").action == "install"

    def test_track_latest_newer_release(self, ctx):
        pipeline = DependencyPipeline(ctx, _mock_handlers(), latest_version=lambda dep: "1.3.0")
        assert pipeline.decide(_recipe("captaincore"), "1.2.3").action == "upgrade"

    def test_track_latest_current(self, ctx):
        pipeline = DependencyPipeline(ctx, _mock_handlers(), latest_version=lambda dep: "1.2.3")
        assert pipeline.decide(_recipe("captaincore"), "1.2.3").action == "skip"

    @pytest.mark.parametrize("latest", [None, "latest"])
    def test_track_latest_advisory_keeps_installed(self, ctx, latest):
        pipeline = DependencyPipeline(ctx, _mock_handlers(), latest_version=lambda dep: latest)
        assert pipeline.decide(_recipe("captaincore"), "1.2.3").action == "skip"

    def test_track_latest_lookup_error_keeps_installed(self, ctx):
        def lookup(dep):
            raise NetworkError("rate limited")

        pipeline = DependencyPipeline(ctx, _mock_handlers(), latest_version=lookup)
        assert pipeline.decide(_recipe("captaincore"), "1.2.3").action == "skip"


class TestRunOne:
    def test_satisfied_never_invokes_strategy(self, host, ctx):
        host.install_fake("/usr/local/go/bin/go", "go version go1.21.6 linux/amd64")
        handlers = _mock_handlers()
        outcome = DependencyPipeline(ctx, handlers).run_one(_recipe("go"))

        assert outcome.history == [S.UNCHECKED, S.PROBED, S.SATISFIED]
        for handler in handlers.values():
            handler.assert_not_called()

    def test_missing_dependency_goes_to_needs_install(self, ctx):
        handlers = _mock_handlers()
        outcome = DependencyPipeline(ctx, handlers).run_one(_recipe("git"))
        # installed but the fake apt does not make git appear
        assert outcome.history[:3] == [S.UNCHECKED, S.NEEDS_INSTALL, S.INSTALLED]
        assert outcome.state == S.INSTALLED
        handlers[InstallStrategy.PACKAGE_MANAGER].assert_called_once()

    def test_required_failure_is_fatal(self, ctx):
        handlers = _mock_handlers()
        handlers[InstallStrategy.DIRECT_DOWNLOAD].side_effect = InstallFailure("disk full")
        outcome = DependencyPipeline(ctx, handlers).run_one(_recipe("go"))
        assert outcome.state == S.FAILED
        assert outcome.fatal
        assert outcome.error == "disk full"

    def test_optional_failure_is_a_warning(self, ctx):
        handlers = _mock_handlers()
        handlers[InstallStrategy.PACKAGE_MANAGER].side_effect = InstallFailure("no caddy")
        outcome = DependencyPipeline(ctx, handlers).run_one(_recipe("caddy"))
        assert outcome.state == S.FAILED
        assert not outcome.fatal

    def test_unsupported_platform_always_fatal(self, ctx):
        handlers = _mock_handlers()
        handlers[InstallStrategy.PACKAGE_MANAGER].side_effect = UnsupportedArchitecture("mips")
        outcome = DependencyPipeline(ctx, handlers).run_one(_recipe("jq"))
        assert outcome.fatal


class TestGoScenarios:
    """Minimum 1.18, pinned download 1.21.6."""

    def test_current_go_is_left_alone(self, host, ctx):
        host.install_fake("/usr/local/go/bin/go", "go version go1.21.6 linux/amd64")
        strategies = InstallStrategies(ctx)
        outcome = DependencyPipeline(ctx, strategies.handlers()).run_one(_recipe("go"))

        assert outcome.state == S.SATISFIED
        assert outcome.installed_version == "1.21.6"
        assert host.downloads == []

    def test_old_go_is_upgraded(self, host, ctx, sandbox):
        host.install_fake("/usr/local/go/bin/go", "go version go1.10.0 linux/amd64")
        host.files[GO_URL] = _go_tarball("1.21.6")
        strategies = InstallStrategies(ctx)
        outcome = DependencyPipeline(ctx, strategies.handlers()).run_one(_recipe("go"))

        assert outcome.history == [S.UNCHECKED, S.PROBED, S.NEEDS_INSTALL, S.INSTALLED, S.VERIFIED]
        assert outcome.decision.action == "upgrade"
        assert host.downloads == [GO_URL]
        assert outcome.final_version == "1.21.6"
        assert get_tool_version(ctx, _recipe("go")) == "1.21.6"
        assert "/usr/local/go/bin" in (sandbox / "etc/profile.d/golang.sh").read_text()

    def test_arm64_download(self, host, ctx):
        ctx.machine = lambda: "aarch64"
        url = GO_URL.replace("amd64", "arm64")
        host.files[url] = _go_tarball("1.21.6")
        strategies = InstallStrategies(ctx)
        outcome = DependencyPipeline(ctx, strategies.handlers()).run_one(_recipe("go"))
        assert outcome.state == S.VERIFIED
        assert host.downloads == [url]


class TestReleaseArtifact:
    def test_fresh_install(self, host, ctx, sandbox):
        _publish(host, "v1.2.3")
        strategies = InstallStrategies(ctx)
        pipeline = DependencyPipeline(ctx, strategies.handlers(), latest_version=strategies.latest_version)
        outcome = pipeline.run_one(_recipe("captaincore"))

        assert outcome.state == S.VERIFIED
        assert outcome.final_version == "1.2.3"
        assert (sandbox / "usr/local/bin/captaincore").read_text() == "CaptainCore v1.2.3"
        # one metadata fetch serves both decision and install
        assert host.fetches == [RELEASE_API]

    def test_outdated_release_upgraded(self, host, ctx):
        host.install_fake("/usr/local/bin/captaincore", "CaptainCore v1.0.0")
        _publish(host, "v1.2.3")
        strategies = InstallStrategies(ctx)
        pipeline = DependencyPipeline(ctx, strategies.handlers(), latest_version=strategies.latest_version)
        outcome = pipeline.run_one(_recipe("captaincore"))

        assert outcome.decision.action == "upgrade"
        assert outcome.final_version == "1.2.3"

    def test_current_release_skipped(self, host, ctx):
        host.install_fake("/usr/local/bin/captaincore", "CaptainCore v1.2.3")
        _publish(host, "v1.2.3")
        strategies = InstallStrategies(ctx)
        pipeline = DependencyPipeline(ctx, strategies.handlers(), latest_version=strategies.latest_version)
        outcome = pipeline.run_one(_recipe("captaincore"))

        assert outcome.state == S.SATISFIED
        assert host.downloads == []

    def test_no_asset_for_arch_is_fatal(self, host, ctx, sandbox):
        _publish(host, "v1.2.3", asset_name="captaincore_{v}_darwin_arm64.tar.gz")
        strategies = InstallStrategies(ctx)
        outcome = DependencyPipeline(ctx, strategies.handlers()).run_one(_recipe("captaincore"))

        assert outcome.fatal
        assert "captaincore_1.2.3_darwin_arm64.tar.gz" in outcome.error
        assert not (sandbox / "usr/local/bin/captaincore").exists()


class TestRun:
    def test_required_failure_stops_the_run(self, ctx):
        handlers = _mock_handlers()
        handlers[InstallStrategy.DIRECT_DOWNLOAD].side_effect = InstallFailure("boom")
        deps = default_dependencies()
        report = DependencyPipeline(ctx, handlers).run(deps)

        assert report.aborted
        assert not report.ok
        assert [o.name for o in report.outcomes] == ["go"]
        assert report.error == "go: boom"

    def test_optional_failure_continues(self, host, ctx):
        handlers = _mock_handlers()
        handlers[InstallStrategy.PACKAGE_MANAGER].side_effect = InstallFailure("apt locked")
        deps = [_recipe("git"), _recipe("jq")]
        report = DependencyPipeline(ctx, handlers).run(deps)

        assert report.ok
        assert [o.name for o in report.warnings] == ["git", "jq"]
        assert report.to_dict()["dependencies"][0]["state"] == "failed"
