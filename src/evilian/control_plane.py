"""Azure control-plane client.

Thin wrapper over the ``az`` CLI covering every resource operation a run
needs: resource groups, the network security group and its rules, the VM,
its instance view, its public IP and the run-command channel.

Security:
- Commands go through AzureCLIExecutor, which redacts --admin-password
  and summarizes --scripts before display
- No shell=True; arguments are passed as a list
- The Azure config directory is held by the client, not read from globals

Every call passes ``--only-show-errors``. Any non-zero exit raises
ControlPlaneError carrying the Azure error code parsed from stderr; the
caller treats it as fatal.
"""

import json
import logging
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from evilian.azure_cli_visibility import AzureCLIExecutor
from evilian.credentials import VmCredential
from evilian.exceptions import ControlPlaneError
from evilian.network_security.nsg_policy import FirewallRule
from evilian.security import AzureCommandSanitizer

logger = logging.getLogger(__name__)

POWER_STATE_QUERY = "instanceView.statuses[?starts_with(code,'PowerState/')].code"
AGENT_STATUS_QUERY = (
    "instanceView.vmAgent.statuses[?code=='ProvisioningState/succeeded'].displayStatus"
)

_CODE_LINE_PATTERN = re.compile(r"^Code:\s*(\w+)", re.MULTILINE)
_CODE_PAREN_PATTERN = re.compile(r"\((\w+)\)")
_EXIT_STATUS_PATTERN = re.compile(r"exit status[=\s]+(\d+)", re.IGNORECASE)


@dataclass
class VmSpec:
    """Parameters for ``az vm create``."""

    resource_group: str
    name: str
    region: str
    image: str
    size: str
    nsg_name: str
    credential: VmCredential
    tags: dict[str, str] = field(default_factory=dict)


@dataclass
class RemoteScriptOutput:
    """What the run-command channel reported for a script."""

    exit_status: int
    stdout: str
    stderr: str


def parse_error_code(stderr: str) -> str:
    """Extract the Azure error code from CLI stderr.

    Examples:
        >>> parse_error_code("ERROR: (ResourceGroupNotFound) Resource group 'x' could not be found.")
        'ResourceGroupNotFound'
        >>> parse_error_code("ERROR: something odd")
        'CliError'
    """
    match = _CODE_LINE_PATTERN.search(stderr) or _CODE_PAREN_PATTERN.search(stderr)
    return match.group(1) if match else "CliError"


def format_tags(tags: dict[str, str]) -> list[str]:
    """Render tags as ``key=value`` arguments for ``--tags``."""
    return [f"{key}={value}" for key, value in tags.items()]


def parse_run_command_output(payload: dict[str, Any]) -> RemoteScriptOutput:
    """Parse the JSON returned by ``az vm run-command invoke``.

    Linux run-command returns a single status whose message looks like::

        Enable succeeded: \\n[stdout]\\n...\\n[stderr]\\n...

    A failed script is reported as ``Enable failed`` or a ``/failed`` status
    code, usually with ``exit status=N`` in the message.
    """
    statuses = payload.get("value") or []
    if not statuses:
        return RemoteScriptOutput(exit_status=1, stdout="", stderr="run-command returned no status")

    status = statuses[0]
    message = status.get("message") or ""
    code = status.get("code") or ""

    stdout, stderr = message, ""
    if "[stdout]" in message:
        stdout = message.split("[stdout]", 1)[1]
        if "[stderr]" in stdout:
            stdout, stderr = stdout.split("[stderr]", 1)
    elif "[stderr]" in message:
        stdout, stderr = message.split("[stderr]", 1)

    failed = code.lower().endswith("/failed") or "enable failed" in message.lower()
    exit_status = 0
    if failed:
        match = _EXIT_STATUS_PATTERN.search(message)
        exit_status = int(match.group(1)) if match else 1

    return RemoteScriptOutput(exit_status=exit_status, stdout=stdout.strip(), stderr=stderr.strip())


class AzureControlPlane:
    """Client for the Azure resources a run creates and queries.

    Example:
        >>> client = AzureControlPlane(azure_config_dir=Path.home() / ".azure")
        >>> client.group_exists("evilian-demo-rg")
        False
    """

    def __init__(
        self,
        azure_config_dir: Path | str | None = None,
        executor: AzureCLIExecutor | None = None,
        show_commands: bool = True,
    ):
        self.azure_config_dir = azure_config_dir
        self.executor = executor or AzureCLIExecutor(
            azure_config_dir=azure_config_dir, show_commands=show_commands
        )
        # Secrets seen by this client are scrubbed from error messages
        self._secrets: list[str] = []

    def _run(self, args: list[str]) -> str:
        command = ["az", *args, "--only-show-errors"]
        result = self.executor.execute(command)
        if not result["success"]:
            stderr = (result.get("stderr") or result.get("error") or "").strip()
            for secret in self._secrets:
                stderr = AzureCommandSanitizer.scrub_secret(stderr, secret)
            stderr = AzureCommandSanitizer.sanitize(stderr)
            raise ControlPlaneError(parse_error_code(stderr), stderr or result["command"])
        return (result.get("stdout") or "").strip()

    def _run_json(self, args: list[str]) -> Any:
        output = self._run([*args, "-o", "json"])
        if not output:
            return None
        try:
            return json.loads(output)
        except json.JSONDecodeError as e:
            raise ControlPlaneError("InvalidResponse", f"Unparseable Azure CLI output: {e}") from e

    # Resource groups

    def group_exists(self, name: str) -> bool:
        output = self._run(["group", "exists", "--name", name])
        return output.lower() == "true"

    def list_tagged_groups(self, tag_key: str, tag_value: str) -> list[str]:
        """Names of resource groups carrying ``tag_key=tag_value``."""
        output = self._run(
            ["group", "list", "--query", f"[?tags.{tag_key}=='{tag_value}'].name", "-o", "tsv"]
        )
        return [line.strip() for line in output.splitlines() if line.strip()]

    def delete_group(self, name: str, no_wait: bool = True) -> None:
        args = ["group", "delete", "--name", name, "--yes"]
        if no_wait:
            args.append("--no-wait")
        self._run(args)

    def create_group(self, name: str, region: str, tags: dict[str, str]) -> None:
        self._run(
            ["group", "create", "--name", name, "--location", region, "--tags", *format_tags(tags)]
        )

    # Network security

    def create_nsg(self, name: str, group: str, region: str) -> None:
        self._run(
            [
                "network",
                "nsg",
                "create",
                "--name",
                name,
                "--resource-group",
                group,
                "--location",
                region,
            ]
        )

    def create_rule(self, group: str, nsg: str, rule: FirewallRule) -> None:
        self._run(
            [
                "network",
                "nsg",
                "rule",
                "create",
                "--resource-group",
                group,
                "--nsg-name",
                nsg,
                "--name",
                rule.name,
                "--priority",
                str(rule.priority),
                "--direction",
                rule.direction,
                "--access",
                rule.access,
                "--protocol",
                rule.protocol,
                "--source-address-prefixes",
                *rule.source_ranges,
                "--source-port-ranges",
                *rule.source_ports,
                "--destination-address-prefixes",
                *rule.destination_ranges,
                "--destination-port-ranges",
                *rule.destination_ports,
            ]
        )

    # Virtual machine

    def create_vm(self, spec: VmSpec) -> str:
        """Create the VM and return its public IP."""
        self._secrets.append(spec.credential.password)
        return self._run(
            [
                "vm",
                "create",
                "--resource-group",
                spec.resource_group,
                "--name",
                spec.name,
                "--location",
                spec.region,
                "--image",
                spec.image,
                "--size",
                spec.size,
                "--nsg",
                spec.nsg_name,
                "--admin-username",
                spec.credential.username,
                "--admin-password",
                spec.credential.password,
                "--authentication-type",
                "password",
                "--enable-secure-boot",
                "false",
                "--public-ip-sku",
                "Standard",
                "--tags",
                *format_tags(spec.tags),
                "--query",
                "publicIpAddress",
                "-o",
                "tsv",
            ]
        )

    def get_power_state(self, group: str, vm: str) -> str:
        """Current ``PowerState/...`` code, or empty string if not reported yet."""
        return self._run(
            [
                "vm",
                "get-instance-view",
                "--resource-group",
                group,
                "--name",
                vm,
                "--query",
                POWER_STATE_QUERY,
                "-o",
                "tsv",
            ]
        )

    def get_agent_status(self, group: str, vm: str) -> str:
        """Guest agent display status (``Ready`` once provisioning succeeded)."""
        return self._run(
            [
                "vm",
                "get-instance-view",
                "--resource-group",
                group,
                "--name",
                vm,
                "--query",
                AGENT_STATUS_QUERY,
                "-o",
                "tsv",
            ]
        )

    def restart_vm(self, group: str, vm: str) -> None:
        self._run(["vm", "restart", "--resource-group", group, "--name", vm])

    def get_public_ip(self, group: str, vm: str) -> str:
        return self._run(
            [
                "vm",
                "show",
                "--resource-group",
                group,
                "--name",
                vm,
                "-d",
                "--query",
                "publicIps",
                "-o",
                "tsv",
            ]
        )

    def run_remote_script(self, group: str, vm: str, script_text: str) -> RemoteScriptOutput:
        """Run a shell script inside the VM through the run-command channel.

        A script that exits non-zero is reported through the exit status, not
        raised; only a failure of the channel itself raises ControlPlaneError.
        """
        payload = self._run_json(
            [
                "vm",
                "run-command",
                "invoke",
                "--resource-group",
                group,
                "--name",
                vm,
                "--command-id",
                "RunShellScript",
                "--scripts",
                script_text,
            ]
        )
        return parse_run_command_output(payload or {})


__all__ = [
    "AGENT_STATUS_QUERY",
    "AzureControlPlane",
    "POWER_STATE_QUERY",
    "RemoteScriptOutput",
    "VmSpec",
    "format_tags",
    "parse_error_code",
    "parse_run_command_output",
]
