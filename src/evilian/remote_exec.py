"""Remote script execution inside the VM.

Scripts travel through the Azure run-command channel; success or failure
is read from the script's exit status only.
"""

import logging
from dataclasses import dataclass

from evilian.bootstrap_script import BootstrapScript, package_manager_probe_script
from evilian.control_plane import AzureControlPlane

logger = logging.getLogger(__name__)

BUSY = "busy"
IDLE = "idle"


@dataclass
class ExecutionResult:
    """Result of running a script on the VM."""

    succeeded: bool
    output: str
    exit_status: int = 0


class RemoteBootstrapExecutor:
    """Run a BootstrapScript on one VM."""

    def __init__(self, control_plane: AzureControlPlane, resource_group: str, vm_name: str):
        self.control_plane = control_plane
        self.resource_group = resource_group
        self.vm_name = vm_name

    def run(self, script: BootstrapScript) -> ExecutionResult:
        """Render and run the script.

        Returns:
            ExecutionResult; ``output`` holds stdout followed by stderr

        Raises:
            ControlPlaneError: If the run-command channel itself fails
        """
        logger.info(
            f"Running bootstrap script v{script.version} "
            f"({len(script.steps)} steps) on {self.vm_name}..."
        )
        remote = self.control_plane.run_remote_script(
            self.resource_group, self.vm_name, script.render()
        )
        output = remote.stdout
        if remote.stderr:
            output = f"{output}\n{remote.stderr}" if output else remote.stderr

        for line in remote.stdout.splitlines():
            logger.debug(f"[{self.vm_name}] {line}")

        return ExecutionResult(
            succeeded=remote.exit_status == 0,
            output=output,
            exit_status=remote.exit_status,
        )


class PackageManagerProbe:
    """Report whether apt/dpkg is running on the VM."""

    def __init__(self, control_plane: AzureControlPlane, resource_group: str, vm_name: str):
        self.control_plane = control_plane
        self.resource_group = resource_group
        self.vm_name = vm_name

    def is_busy(self) -> str:
        """Return ``"busy"`` or ``"idle"``.

        Anything other than an explicit ``true`` from the probe counts as idle.
        """
        remote = self.control_plane.run_remote_script(
            self.resource_group, self.vm_name, package_manager_probe_script()
        )
        stdout = remote.stdout.replace("\r", "")
        lines = [line.strip() for line in stdout.splitlines() if line.strip()]
        return BUSY if lines and lines[-1] == "true" else IDLE


__all__ = ["BUSY", "ExecutionResult", "IDLE", "PackageManagerProbe", "RemoteBootstrapExecutor"]
