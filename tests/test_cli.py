"""
Tests for CLI commands — global options, check, and the bootstrap commands.
"""

import json
import logging
from pathlib import Path
from unittest.mock import patch

import pytest
from click.testing import CliRunner

from hostsetup.core.observability.logging_config import setup_logging
from hostsetup.core.use_cases.bootstrap import BootstrapResult
from hostsetup.core.use_cases.check import CheckResult, DependencyStatus
from hostsetup.main import cli


@pytest.fixture(autouse=True)
def isolated_env(monkeypatch, tmp_path: Path):
    for name in ("HOSTSETUP_CONFIG", "HOSTSETUP_DOMAIN", "HOSTSETUP_LOG_LEVEL", "HOSTSETUP_LOG_FILE"):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.chdir(tmp_path)


class TestCLIGlobal:
    def test_help(self):
        result = CliRunner().invoke(cli, ["--help"])
        assert result.exit_code == 0
        assert "CaptainCore" in result.output
        for command in ("run", "install", "provision", "check"):
            assert command in result.output

    def test_version(self):
        result = CliRunner().invoke(cli, ["--version"])
        assert result.exit_code == 0
        assert "0.1.0" in result.output

    def test_bad_config_exits_1(self, tmp_path):
        bad = tmp_path / "hostsetup.yml"
        bad.write_text("timeout: -1\n")
        result = CliRunner().invoke(cli, ["--config", str(bad), "install"])
        assert result.exit_code == 1


class TestBootstrapCommands:
    def test_bare_invocation_runs_bootstrap(self):
        with patch("hostsetup.core.use_cases.bootstrap.run_bootstrap",
                   return_value=BootstrapResult()) as run:
            result = CliRunner().invoke(cli, ["--domain", "cc.example.com"])
        assert result.exit_code == 0
        assert run.call_args.kwargs["domain"] == "cc.example.com"

    def test_run_failure_exits_1(self):
        failed = BootstrapResult().fail("preflight", "must be root")
        with patch("hostsetup.core.use_cases.bootstrap.run_bootstrap", return_value=failed):
            result = CliRunner().invoke(cli, ["run"])
        assert result.exit_code == 1

    def test_install_json(self):
        with patch("hostsetup.core.use_cases.bootstrap.run_install",
                   return_value=BootstrapResult(architecture="arm64")):
            result = CliRunner().invoke(cli, ["install", "--json"])
        assert result.exit_code == 0
        data = json.loads(result.stdout)
        assert data["ok"] is True
        assert data["architecture"] == "arm64"

    def test_provision_passes_domain(self):
        with patch("hostsetup.core.use_cases.bootstrap.run_provision",
                   return_value=BootstrapResult()) as run:
            result = CliRunner().invoke(cli, ["-d", "x.example.com", "provision"])
        assert result.exit_code == 0
        assert run.call_args.kwargs["domain"] == "x.example.com"
        # CliRunner's stdin is not a terminal: no prompt
        assert run.call_args.kwargs["prompt"] is None


class TestCheckCommand:
    def _result(self) -> CheckResult:
        return CheckResult(
            valid=True,
            dependencies=[
                DependencyStatus("go", True, "direct-download", "1.21.6", "1.18", "skip", "1.21.6 satisfies >= 1.18"),
                DependencyStatus("captaincore", True, "release-artifact", None, None, "install", "not installed"),
            ],
            service_state="inactive",
        )

    def test_table(self):
        with patch("hostsetup.core.use_cases.check.check_host", return_value=self._result()):
            result = CliRunner().invoke(cli, ["check"])
        assert result.exit_code == 0
        assert "Configuration is valid" in result.output
        assert "1.21.6 (>= 1.18)" in result.output
        assert "install: not installed" in result.output
        assert "inactive" in result.output

    def test_json(self):
        with patch("hostsetup.core.use_cases.check.check_host", return_value=self._result()):
            result = CliRunner().invoke(cli, ["check", "--json"])
        data = json.loads(result.stdout)
        assert data["valid"] is True
        assert [d["name"] for d in data["dependencies"]] == ["go", "captaincore"]

    def test_invalid_config(self, tmp_path):
        bad = tmp_path / "hostsetup.yml"
        bad.write_text("service: [not, a, mapping]\n")
        result = CliRunner().invoke(cli, ["--config", str(bad), "check"])
        assert result.exit_code == 1
        assert "Configuration errors" in result.output

    def test_unparseable_dependency_version(self, tmp_path):
        bad = tmp_path / "hostsetup.yml"
        bad.write_text(
            "dependencies:\n"
            "  - name: go\n"
            "    probe: [go, version]\n"
            "    strategy: direct-download\n"
            "    minimum_version: '1.x'\n"
        )
        result = CliRunner().invoke(cli, ["--config", str(bad), "check"])
        assert result.exit_code == 1
        assert result.exception is None or isinstance(result.exception, SystemExit)
        assert "Configuration errors" in result.output


class TestLogging:
    def test_console_format(self, capsys):
        setup_logging("INFO")
        logging.getLogger("hostsetup.test").warning("disk almost full")
        logging.getLogger("hostsetup.test").info("all good")
        err = capsys.readouterr().err
        assert "[WARN] disk almost full" in err
        assert "[INFO] all good" in err

    def test_level_filter(self, capsys):
        setup_logging("WARN")
        logging.getLogger("hostsetup.test").info("hidden")
        assert "hidden" not in capsys.readouterr().err

    def test_file_handler(self, tmp_path):
        log_file = tmp_path / "install.log"
        setup_logging("ERROR", log_file=str(log_file), log_file_level="DEBUG")
        logging.getLogger("hostsetup.test").debug("traced")
        for handler in logging.getLogger().handlers:
            handler.flush()
        assert "traced" in log_file.read_text()

    def test_unknown_level_defaults_to_info(self):
        setup_logging("LOUD")
        assert logging.getLogger().level == logging.INFO
