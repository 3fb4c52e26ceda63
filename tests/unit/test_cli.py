"""Unit tests for the jenkins-bootstrap command line."""

import json
from pathlib import Path
from unittest.mock import patch

import pytest
from click.testing import CliRunner

from jenkins_bootstrap.bootstrap import BootstrapResult, PluginProvisionResult, ReadinessResult
from jenkins_bootstrap.errors import JobFailedError, RetryExhaustedError
from jenkins_bootstrap.main import cli


@pytest.fixture
def runner():
    """Create CLI runner."""
    return CliRunner()


@pytest.fixture
def config_file(tmp_path):
    """A config file with a non-default port and a password."""
    path = tmp_path / "config.yaml"
    path.write_text(
        "port: 9090\n"
        f"home: {tmp_path / 'home'}\n"
        "admin_password: hunter2\n"
        "conn_retries: 1\n"
        "conn_delay: 0\n"
    )
    return path


class TestConfigShow:
    """Tests for jenkins-bootstrap config show."""

    def test_show_with_sources(self, runner, config_file):
        """Test values are listed with their origin and secrets masked."""
        result = runner.invoke(cli, ["-c", str(config_file), "config", "show"])

        assert result.exit_code == 0
        assert "port: 9090  (config file)" in result.output
        assert "listen_address: 127.0.0.1  (default)" in result.output
        assert "hunter2" not in result.output
        assert "admin_password: ********" in result.output

    def test_show_json(self, runner, config_file):
        """Test JSON output."""
        result = runner.invoke(cli, ["-c", str(config_file), "config", "show", "--json"])

        assert result.exit_code == 0
        data = json.loads(result.stdout)
        assert data["port"] == 9090
        assert data["admin_password"] == "********"

    def test_invalid_config(self, runner, tmp_path):
        """Test a broken config file exits with status 1."""
        path = tmp_path / "config.yaml"
        path.write_text("prot: 9090\n")

        result = runner.invoke(cli, ["-c", str(path), "config", "show"])

        assert result.exit_code == 1
        assert "✗ Configuration:" in result.output
        assert "prot" in result.output


class TestWait:
    """Tests for jenkins-bootstrap wait."""

    def test_ready(self, runner, config_file):
        """Test a server that answers reports success."""
        ready = ReadinessResult(ready=True, status=200, attempts=2, elapsed_seconds=0.4)
        with patch(
            "jenkins_bootstrap.main.ReadinessGate.wait_until_ready_sync", return_value=ready
        ) as mock_wait:
            result = runner.invoke(cli, ["-c", str(config_file), "wait", "--port", "9191"])

        assert result.exit_code == 0
        assert "✓ Jenkins ready (HTTP 200) after 2 probe(s)" in result.output
        assert mock_wait.call_args[0][0] == "http://127.0.0.1:9191/cli/"

    def test_not_ready(self, runner, config_file):
        """Test an exhausted budget exits with status 1."""
        not_ready = ReadinessResult(
            ready=False, status=503, attempts=2, error="Jenkins not ready after 2 probes."
        )
        with patch(
            "jenkins_bootstrap.main.ReadinessGate.wait_until_ready_sync", return_value=not_ready
        ):
            result = runner.invoke(cli, ["-c", str(config_file), "wait"])

        assert result.exit_code == 1
        assert "Jenkins not ready after 2 probes." in result.output


class TestPlugins:
    """Tests for jenkins-bootstrap plugins."""

    def test_bad_plugin_spec(self, runner, config_file):
        """Test --plugin values must be ID=VERSION."""
        result = runner.invoke(cli, ["-c", str(config_file), "plugins", "--plugin", "git"])

        assert result.exit_code == 2
        assert "ID=VERSION" in result.output

    def test_plugins_override_configured_set(self, runner, config_file, tmp_path):
        """Test --plugin replaces the configured plugins and pinned files are listed."""
        pinned = PluginProvisionResult(pinned=[Path("git.jpi.pinned")])
        with patch(
            "jenkins_bootstrap.main.PluginProvisioner.provision_sync", return_value=pinned
        ) as mock_provision:
            result = runner.invoke(
                cli, ["-c", str(config_file), "plugins", "--plugin", "git=4.2.1"]
            )

        assert result.exit_code == 0
        mock_provision.assert_called_once_with({"git": "4.2.1"})
        assert "✓ git.jpi.pinned" in result.output

    def test_download_failure(self, runner, config_file):
        """Test a failed download is reported against the plugin step."""
        error = JobFailedError("download job 'git' failed: 404", job="git")
        with patch("jenkins_bootstrap.main.PluginProvisioner.provision_sync", side_effect=error):
            result = runner.invoke(
                cli, ["-c", str(config_file), "plugins", "--plugin", "git=4.2.1"]
            )

        assert result.exit_code == 1
        assert "✗ provision-plugins: download job 'git' failed: 404" in result.output


class TestRun:
    """Tests for jenkins-bootstrap run."""

    def test_success_summary(self, runner, config_file):
        """Test a successful run prints the summary."""
        outcome = BootstrapResult(
            success=True,
            executed=["create-aux-dir", "extract-cli"],
            ignored=[("login-first-attempt", "login exited with status 1")],
        )
        with patch("jenkins_bootstrap.main.Orchestrator.run", return_value=outcome):
            result = runner.invoke(cli, ["-c", str(config_file), "run"])

        assert result.exit_code == 0
        assert "✓ Bootstrap complete!" in result.output
        assert "Steps run: 2" in result.output
        assert "Ignored failures: login-first-attempt" in result.output

    def test_failure_names_step(self, runner, config_file):
        """Test a failed run exits 1 and names the step and tool output."""
        error = RetryExhaustedError(
            "Jenkins not ready after 2 probes", step="wait-ready", output="HTTP 503"
        )
        outcome = BootstrapResult(success=False, failed_step="wait-ready", error=error)
        with patch("jenkins_bootstrap.main.Orchestrator.run", return_value=outcome):
            result = runner.invoke(cli, ["-c", str(config_file), "run"])

        assert result.exit_code == 1
        assert "✗ wait-ready: Jenkins not ready after 2 probes" in result.output
        assert "HTTP 503" in result.output

    def test_flags_override_config(self, runner, config_file):
        """Test command-line flags reach the run context."""
        outcome = BootstrapResult(success=True)
        with patch("jenkins_bootstrap.main.Orchestrator.run", return_value=outcome) as mock_run:
            result = runner.invoke(
                cli,
                ["-c", str(config_file), "run", "--port", "9393", "--container-mode"],
            )

        assert result.exit_code == 0
        ctx = mock_run.call_args[0][0]
        assert ctx.config.port == 9393
        assert ctx.config.container_mode is True
        assert ctx.config.get_source("port") == "command line"
