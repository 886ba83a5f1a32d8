"""Tests for the evilian command line.

Azure-facing collaborators are patched at the cli module, so no test here
runs the az CLI.
"""

from unittest.mock import patch

import pytest
from click.testing import CliRunner

from evilian import __version__
from evilian.cli import main
from evilian.config_manager import ConfigManager
from evilian.exceptions import (
    ControlPlaneError,
    ConvergenceTimeout,
    PreconditionError,
    RemoteScriptFailure,
)
from evilian.naming import derive
from evilian.orchestrator import RunState

ARGS = ["-r", "203.0.113.5/32", "-n", "Evil123"]


@pytest.fixture(autouse=True)
def cli_environment(tmp_path, monkeypatch):
    """No operator config file and a wide console."""
    monkeypatch.setattr(ConfigManager, "DEFAULT_CONFIG_FILE", tmp_path / "config.toml")
    monkeypatch.setenv("COLUMNS", "200")


@pytest.fixture
def runner():
    return CliRunner()


@pytest.fixture
def azure():
    """Patch every Azure-facing collaborator of the command."""
    with patch("evilian.cli.PrerequisiteChecker") as prerequisites, patch(
        "evilian.cli.AzureCLIExecutor"
    ) as executor, patch("evilian.cli.AzureAuthenticator") as authenticator, patch(
        "evilian.cli.AzureControlPlane"
    ) as control_plane, patch("evilian.cli.ProvisioningOrchestrator") as orchestrator:
        orchestrator.return_value.state = None
        orchestrator.return_value.names = derive("evil123")
        yield {
            "prerequisites": prerequisites,
            "executor": executor,
            "authenticator": authenticator,
            "control_plane": control_plane,
            "orchestrator": orchestrator,
        }


class TestHelpAndVersion:
    def test_help(self, runner):
        result = runner.invoke(main, ["--help"])
        assert result.exit_code == 0
        assert "--range" in result.output
        assert "--name" in result.output

    def test_short_help(self, runner):
        result = runner.invoke(main, ["-h"])
        assert result.exit_code == 0
        assert "Usage:" in result.output

    def test_version(self, runner):
        result = runner.invoke(main, ["--version"])
        assert result.exit_code == 0
        assert __version__ in result.output


class TestUsageErrors:
    def test_missing_arguments_show_help(self, runner, azure):
        result = runner.invoke(main, [])

        assert result.exit_code == 2
        assert "Missing option" in result.output
        assert "Usage:" in result.output
        azure["orchestrator"].assert_not_called()

    def test_missing_name(self, runner, azure):
        result = runner.invoke(main, ["-r", "203.0.113.5"])
        assert result.exit_code == 2
        assert "--name" in result.output

    def test_unknown_option(self, runner):
        result = runner.invoke(main, [*ARGS, "--bogus"])
        assert result.exit_code == 2
        assert "Usage:" in result.output

    def test_trusted_ranges_file_must_exist(self, runner, tmp_path):
        result = runner.invoke(main, [*ARGS, "--trusted-ranges", str(tmp_path / "missing.yaml")])
        assert result.exit_code == 2


class TestValidationErrors:
    def test_invalid_range(self, runner, azure):
        result = runner.invoke(main, ["-r", "203.0.113.5/33", "-n", "demo"])

        assert result.exit_code == 2
        assert "Invalid IP/CIDR" in result.output
        azure["prerequisites"].require.assert_not_called()
        azure["orchestrator"].assert_not_called()

    def test_invalid_name(self, runner, azure):
        result = runner.invoke(main, ["-r", "203.0.113.5", "-n", "bad_name"])

        assert result.exit_code == 2
        assert "letters, numbers, or hyphens" in result.output
        azure["orchestrator"].assert_not_called()

    def test_missing_explicit_config(self, runner, tmp_path):
        result = runner.invoke(main, [*ARGS, "--config", str(tmp_path / "nope.toml")])
        assert result.exit_code == 2
        assert "Config file not found" in result.output

    def test_bad_polling_override(self, runner, azure, monkeypatch):
        monkeypatch.setenv("EVILIAN_SETTLE_SECONDS", "soon")

        result = runner.invoke(main, ARGS)

        assert result.exit_code == 2
        assert "Invalid polling override" in result.output


class TestDryRun:
    def test_prints_plan_without_azure(self, runner, azure):
        result = runner.invoke(main, [*ARGS, "--dry-run"])

        assert result.exit_code == 0
        assert "evilian-evil123-rg" in result.output
        assert "evilian-evil123-vm" in result.output
        assert "evilian-evil123-nsg" in result.output
        assert "AllowEvilianSSH" in result.output
        assert "DenyAllInbound" in result.output
        assert "203.0.113.5/32" in result.output
        assert "set -euo pipefail" in result.output
        azure["prerequisites"].require.assert_not_called()
        azure["executor"].assert_not_called()
        azure["orchestrator"].assert_not_called()

    def test_overrides_and_trusted_ranges(self, runner, tmp_path):
        ranges = tmp_path / "ranges.yaml"
        ranges.write_text("ipv4:\n  - 198.51.100.0/24\n")

        result = runner.invoke(
            main, [*ARGS, "--dry-run", "--location", "westeurope", "--trusted-ranges", str(ranges)]
        )

        assert result.exit_code == 0
        assert "westeurope" in result.output
        assert "198.51.100.0/24" in result.output
        assert "103.21.244.0/22" not in result.output

    def test_config_file_defaults(self, runner, tmp_path):
        config = tmp_path / "custom.toml"
        config.write_text('default_region = "northeurope"\n')

        result = runner.invoke(main, [*ARGS, "--dry-run", "--config", str(config)])

        assert result.exit_code == 0
        assert "northeurope" in result.output

    def test_bad_trusted_ranges_content(self, runner, tmp_path):
        ranges = tmp_path / "ranges.yaml"
        ranges.write_text("ipv4:\n  - not-a-cidr\n")

        result = runner.invoke(main, [*ARGS, "--dry-run", "--trusted-ranges", str(ranges)])

        assert result.exit_code == 2
        assert "Invalid ipv4 range" in result.output


class TestFullRun:
    def test_success(self, runner, azure):
        result = runner.invoke(main, ARGS)

        assert result.exit_code == 0
        azure["prerequisites"].require.assert_called_once()
        azure["authenticator"].return_value.ensure_logged_in.assert_called_once()
        azure["orchestrator"].return_value.run.assert_called_once()

        request = azure["orchestrator"].call_args.args[0]
        assert request.project_name == "evil123"
        assert request.allowed_range == "203.0.113.5/32"
        kwargs = azure["orchestrator"].call_args.kwargs
        assert kwargs["offer_old_group_deletion"] is True
        assert kwargs["connect"] is True

    def test_flags_forwarded(self, runner, azure):
        result = runner.invoke(main, [*ARGS, "--no-connect", "--keep-old-groups"])

        assert result.exit_code == 0
        kwargs = azure["orchestrator"].call_args.kwargs
        assert kwargs["offer_old_group_deletion"] is False
        assert kwargs["connect"] is False

    def test_azure_config_dir_passed_to_executor(self, runner, azure, tmp_path, monkeypatch):
        monkeypatch.setenv("AZURE_CONFIG_DIR", str(tmp_path / "shared-az"))

        runner.invoke(main, ARGS)

        assert azure["executor"].call_args.kwargs["azure_config_dir"] == tmp_path / "shared-az"

    def test_missing_az(self, runner, azure):
        azure["prerequisites"].require.side_effect = PreconditionError("Missing required tools:\n  - az")

        result = runner.invoke(main, ARGS)

        assert result.exit_code == 3
        assert "Missing required tools" in result.output
        azure["orchestrator"].assert_not_called()

    def test_not_logged_in(self, runner, azure):
        azure["authenticator"].return_value.ensure_logged_in.side_effect = PreconditionError(
            "Authenticate to Azure first: az login --use-device-code"
        )

        result = runner.invoke(main, ARGS)

        assert result.exit_code == 3
        assert "az login --use-device-code" in result.output

    def test_group_exists(self, runner, azure):
        azure["orchestrator"].return_value.run.side_effect = PreconditionError(
            "Resource group 'evilian-evil123-rg' already exists. Choose a different project name."
        )

        result = runner.invoke(main, ARGS)

        assert result.exit_code == 3
        assert "already exists" in result.output
        assert "left in place" not in result.output

    def test_control_plane_error(self, runner, azure):
        azure["orchestrator"].return_value.run.side_effect = ControlPlaneError(
            "SkuNotAvailable", "The requested size is not available"
        )

        result = runner.invoke(main, ARGS)

        assert result.exit_code == 4
        assert "[SkuNotAvailable]" in result.output

    def test_convergence_timeout_reports_resources(self, runner, azure):
        error = ConvergenceTimeout("VM running", 3).with_resources(
            "evilian-evil123-rg", "evilian-evil123-vm"
        )
        azure["orchestrator"].return_value.run.side_effect = error

        result = runner.invoke(main, ARGS)

        assert result.exit_code == 5
        assert "Resources were left in place" in result.output
        assert "az group delete --name evilian-evil123-rg" in result.output

    def test_bootstrap_failure_shows_output_tail(self, runner, azure):
        output = "\n".join(f"line {i}" for i in range(1, 31))
        error = RemoteScriptFailure(1, output).with_resources("evilian-evil123-rg", "evilian-evil123-vm")
        azure["orchestrator"].return_value.run.side_effect = error

        result = runner.invoke(main, ARGS)

        assert result.exit_code == 6
        assert "line 30" in result.output
        assert "line 11\n" in result.output
        assert "line 10\n" not in result.output

    def test_ctrl_c_after_resources_exist(self, runner, azure):
        orchestrator = azure["orchestrator"].return_value
        orchestrator.state = RunState.WAITING_AGENT
        orchestrator.run.side_effect = KeyboardInterrupt

        result = runner.invoke(main, ARGS)

        assert result.exit_code == 130
        assert "Cancelled by user" in result.output
        assert "evilian-evil123-rg" in result.output

    def test_ctrl_c_during_preflight(self, runner, azure):
        orchestrator = azure["orchestrator"].return_value
        orchestrator.state = RunState.PREFLIGHT_CHECK
        orchestrator.run.side_effect = KeyboardInterrupt

        result = runner.invoke(main, ARGS)

        assert result.exit_code == 130
        assert "Resources may exist" not in result.output
