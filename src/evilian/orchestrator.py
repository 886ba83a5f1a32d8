"""Provisioning orchestrator.

Drives one run from a validated request to an interactive session:

    Validating -> PreflightCheck -> GroupCreated -> NetworkConfigured
    -> VmCreated -> WaitingRunning -> WaitingAgent -> WaitingPkgIdle(pre)
    -> Bootstrapping -> Settling -> Rebooting -> WaitingRunning(2)
    -> WaitingAgent(2) -> ReinstallRetry -> Reporting -> Done

Each step's remote effect is observed (by polling) before the next one
starts. Nothing is deleted on failure: once the VM exists, errors carry the
resource group and VM name and the resources stay for inspection.

Public API:
    RunState: States of a run
    RunResult: What a finished run produced
    ProvisioningOrchestrator: Runs the sequence
"""

import logging
import time
from collections.abc import Callable
from dataclasses import dataclass, field
from enum import Enum

from evilian.bootstrap_script import BootstrapScript, BootstrapScriptBuilder
from evilian.control_plane import AzureControlPlane, VmSpec
from evilian.convergence import PollCondition, require
from evilian.credentials import VmCredential, generate_credential
from evilian.exceptions import EvilianError, PreconditionError, RemoteScriptFailure
from evilian.modules.interaction_handler import CLIInteractionHandler, InteractionHandler
from evilian.modules.progress import ProgressDisplay, ProgressStage
from evilian.modules.validation import ProvisioningRequest
from evilian.naming import (
    CREATOR_TAG_KEY,
    CREATOR_TAG_VALUE,
    ResourceNameSet,
    derive,
    resource_tags,
)
from evilian.network_security.nsg_manager import NSGManager
from evilian.network_security.nsg_policy import (
    FirewallRule,
    TrustedRanges,
    build_rules,
    validate_rule_set,
)
from evilian.poll_config import PollSettings
from evilian.remote_exec import IDLE, PackageManagerProbe, RemoteBootstrapExecutor
from evilian.session_reporter import ConnectionDetails, SessionOutcome, SessionReporter

logger = logging.getLogger(__name__)

RUNNING = "PowerState/running"
AGENT_READY = "Ready"


class RunState(Enum):
    """States of a provisioning run, in order."""

    VALIDATING = "Validating"
    PREFLIGHT_CHECK = "PreflightCheck"
    GROUP_CREATED = "GroupCreated"
    NETWORK_CONFIGURED = "NetworkConfigured"
    VM_CREATED = "VmCreated"
    WAITING_RUNNING = "WaitingRunning"
    WAITING_AGENT = "WaitingAgent"
    WAITING_PKG_IDLE = "WaitingPkgIdle(pre)"
    BOOTSTRAPPING = "Bootstrapping"
    SETTLING = "Settling"
    REBOOTING = "Rebooting"
    WAITING_RUNNING_2 = "WaitingRunning(2)"
    WAITING_AGENT_2 = "WaitingAgent(2)"
    REINSTALL_RETRY = "ReinstallRetry"
    REPORTING = "Reporting"
    DONE = "Done"


@dataclass
class RunResult:
    """Outcome of a completed run."""

    names: ResourceNameSet
    details: ConnectionDetails
    session: SessionOutcome
    history: list[RunState] = field(default_factory=list)


class ProvisioningOrchestrator:
    """Run the provisioning sequence for one validated request.

    Example:
        >>> orchestrator = ProvisioningOrchestrator(request, AzureControlPlane())
        >>> result = orchestrator.run()
        >>> result.details.public_ip
        '20.12.34.56'
    """

    def __init__(
        self,
        request: ProvisioningRequest,
        control_plane: AzureControlPlane,
        interaction: InteractionHandler | None = None,
        progress: ProgressDisplay | None = None,
        poll_settings: PollSettings | None = None,
        trusted_ranges: TrustedRanges | None = None,
        script: BootstrapScript | None = None,
        reporter: SessionReporter | None = None,
        credential_factory: Callable[[], VmCredential] = generate_credential,
        sleep: Callable[[float], None] = time.sleep,
        offer_old_group_deletion: bool = True,
        connect: bool = True,
    ):
        self.request = request
        self.control_plane = control_plane
        self.interaction = interaction or CLIInteractionHandler()
        self.progress = progress or ProgressDisplay()
        self.poll_settings = poll_settings or PollSettings()
        self.trusted_ranges = trusted_ranges or TrustedRanges()
        self.script = script or BootstrapScriptBuilder().build()
        self.sleep = sleep
        self.reporter = reporter or SessionReporter(
            port_attempts=self.poll_settings.ssh_port_max_attempts,
            port_interval=self.poll_settings.ssh_port_interval,
            sleep=sleep,
        )
        self.credential_factory = credential_factory
        self.offer_old_group_deletion = offer_old_group_deletion
        self.connect = connect

        self.names = derive(request.project_name)
        self.rules: list[FirewallRule] = []
        self.state: RunState | None = None
        self.history: list[RunState] = []
        self.vm_created = False

    def _enter(self, state: RunState) -> None:
        self.state = state
        self.history.append(state)
        logger.debug(f"State: {state.value}")

    def run(self) -> RunResult:
        """Execute the whole sequence.

        Raises:
            PreconditionError: Target resource group already exists
            ControlPlaneError: Any Azure call failed
            ConvergenceTimeout: A hard wait point gave up
            RemoteScriptFailure: The bootstrap script exited non-zero
        """
        try:
            return self._run()
        except EvilianError as e:
            if self.vm_created:
                e.with_resources(self.names.resource_group, self.names.vm_name)
            raise

    def _run(self) -> RunResult:
        names = self.names

        self._enter(RunState.VALIDATING)
        self.rules = build_rules(
            self.request.allowed_range, self.trusted_ranges.ipv4, self.trusted_ranges.ipv6
        )
        validate_rule_set(self.rules)

        self._enter(RunState.PREFLIGHT_CHECK)
        self._preflight()

        credential = self.credential_factory()
        tags = resource_tags(self.request.project_name)

        self._enter(RunState.GROUP_CREATED)
        self.progress.start_operation(
            f"Creating resource group '{names.resource_group}' in {self.request.region}"
        )
        self.control_plane.create_group(names.resource_group, self.request.region, tags)
        self.progress.complete(message=f"Resource group '{names.resource_group}' created")

        self._enter(RunState.NETWORK_CONFIGURED)
        self.progress.start_operation(f"Creating network security group '{names.nsg_name}'")
        NSGManager(self.control_plane).apply(
            names.nsg_name, names.resource_group, self.request.region, self.rules
        )
        self.progress.complete(message=f"{len(self.rules)} inbound rules applied")

        self._enter(RunState.VM_CREATED)
        self.progress.start_operation("Starting VM deployment")
        public_ip = self.control_plane.create_vm(
            VmSpec(
                resource_group=names.resource_group,
                name=names.vm_name,
                region=self.request.region,
                image=self.request.image_reference,
                size=self.request.vm_size,
                nsg_name=names.nsg_name,
                credential=credential,
                tags=tags,
            )
        )
        self.vm_created = True
        self.progress.complete(message=f"VM '{names.vm_name}' created")

        self._enter(RunState.WAITING_RUNNING)
        self._wait_running("Waiting for VM to enter 'running' state")
        self._enter(RunState.WAITING_AGENT)
        self._wait_agent()

        self._enter(RunState.WAITING_PKG_IDLE)
        self._wait_package_manager("before bootstrap")

        self._enter(RunState.BOOTSTRAPPING)
        self._bootstrap("Switching apt sources to Kali rolling and installing required tools")

        self._enter(RunState.SETTLING)
        self._wait_package_manager("after bootstrap")
        settle = self.poll_settings.settle_seconds
        self.progress.update(
            f"Pausing {settle:g} seconds before reboot to ensure package operations are settled...",
            ProgressStage.WAITING,
        )
        self.sleep(settle)

        self._enter(RunState.REBOOTING)
        self.progress.start_operation("Rebooting VM after bootstrap tasks")
        self.control_plane.restart_vm(names.resource_group, names.vm_name)
        self.progress.complete(message="Restart issued")

        self._enter(RunState.WAITING_RUNNING_2)
        self._wait_running("Waiting for VM to finish reboot after bootstrap")
        self._enter(RunState.WAITING_AGENT_2)
        self._wait_agent()

        self._enter(RunState.REINSTALL_RETRY)
        self._bootstrap("Re-running tool installation after reboot")

        self._enter(RunState.REPORTING)
        current_ip = self.control_plane.get_public_ip(names.resource_group, names.vm_name)
        public_ip = current_ip or public_ip
        details = ConnectionDetails(
            resource_group=names.resource_group,
            vm_name=names.vm_name,
            region=self.request.region,
            public_ip=public_ip,
            credential=credential,
        )
        session = self.reporter.report(details, connect=self.connect)

        self._enter(RunState.DONE)
        return RunResult(names=names, details=details, session=session, history=list(self.history))

    def _preflight(self) -> None:
        if self.offer_old_group_deletion:
            self._offer_old_group_deletion()

        if self.control_plane.group_exists(self.names.resource_group):
            raise PreconditionError(
                f"Resource group '{self.names.resource_group}' already exists. "
                "Choose a different project name."
            )

    def _offer_old_group_deletion(self) -> None:
        groups = self.control_plane.list_tagged_groups(CREATOR_TAG_KEY, CREATOR_TAG_VALUE)
        if not groups:
            self.interaction.show_info("No older resource groups tagged by this tool were found.")
            return

        for group in groups:
            self.interaction.show_warning(
                f"Existing resource group created by this tool detected: {group}"
            )
            if self.interaction.confirm(f"Delete resource group '{group}'?", default=False):
                self.control_plane.delete_group(group, no_wait=True)
                self.interaction.show_info(f"Deletion initiated for '{group}'.")
            else:
                self.interaction.show_info(f"Keeping resource group '{group}'.")

    def _wait_running(self, message: str) -> None:
        rg, vm = self.names.resource_group, self.names.vm_name
        self.progress.start_operation(message)
        condition = PollCondition(
            description="VM power state",
            query=lambda: self.control_plane.get_power_state(rg, vm),
            target=RUNNING,
            interval=self.poll_settings.vm_running_interval,
            max_attempts=self.poll_settings.vm_running_max_attempts,
        )
        require(condition.poll(sleep=self.sleep), f"{vm} to reach {RUNNING}", hard=True)
        self.progress.complete(message=f"VM reached state {RUNNING}.")

    def _wait_agent(self) -> None:
        rg, vm = self.names.resource_group, self.names.vm_name
        self.progress.start_operation("Waiting for VM agent to report ProvisioningState/succeeded")
        condition = PollCondition(
            description="VM agent",
            query=lambda: self.control_plane.get_agent_status(rg, vm),
            target=AGENT_READY,
            interval=self.poll_settings.agent_ready_interval,
            max_attempts=self.poll_settings.agent_ready_max_attempts,
        )
        require(
            condition.poll(sleep=self.sleep), f"the VM agent on {vm} to be {AGENT_READY}", hard=True
        )
        self.progress.complete(message="VM agent is Ready.")

    def _wait_package_manager(self, context: str) -> None:
        probe = PackageManagerProbe(
            self.control_plane, self.names.resource_group, self.names.vm_name
        )
        self.progress.start_operation(f"Checking for apt/dpkg activity on the VM ({context})")
        condition = PollCondition(
            description=f"apt/dpkg ({context})",
            query=probe.is_busy,
            target=IDLE,
            interval=self.poll_settings.package_manager_interval,
            max_attempts=self.poll_settings.package_manager_max_attempts,
        )
        result = require(
            condition.poll(sleep=self.sleep), f"apt/dpkg to be idle ({context})", hard=False
        )
        if result.satisfied:
            self.progress.complete(message=f"apt/dpkg is idle on the VM ({context}).")
        else:
            self.progress.warning(
                f"Continuing even though apt/dpkg still appeared busy after waiting ({context})."
            )

    def _bootstrap(self, message: str) -> None:
        executor = RemoteBootstrapExecutor(
            self.control_plane, self.names.resource_group, self.names.vm_name
        )
        self.progress.start_operation(message)
        result = executor.run(self.script)
        if not result.succeeded:
            self.progress.complete(success=False, message="Bootstrap script failed")
            raise RemoteScriptFailure(result.exit_status, result.output)
        self.progress.complete(message="Bootstrap script finished")


__all__ = ["ProvisioningOrchestrator", "RunResult", "RunState"]
