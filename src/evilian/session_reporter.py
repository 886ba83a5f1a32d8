"""Connection details and the optional interactive session.

Nothing here can fail a run: the VM exists whether or not the operator
connects right away, so every failure falls back to printing the manual
connection command.
"""

import logging
import time
from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum

from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from evilian.credentials import VmCredential
from evilian.exceptions import ConnectivityTimeout
from evilian.modules.ssh_connector import SSHConfig, SSHConnectionError, SSHConnector

logger = logging.getLogger(__name__)


class SessionOutcome(Enum):
    """How the reporting phase ended."""

    CONNECTED = "connected"
    SESSION_FAILED = "session_failed"
    PORT_CLOSED = "port_closed"
    MANUAL = "manual"
    NO_ADDRESS = "no_address"
    SKIPPED = "skipped"


@dataclass
class ConnectionDetails:
    """Everything the operator needs to reach the VM."""

    resource_group: str
    vm_name: str
    region: str
    public_ip: str
    credential: VmCredential

    @property
    def ssh_config(self) -> SSHConfig:
        return SSHConfig(
            host=self.public_ip,
            user=self.credential.username,
            password=self.credential.password,
        )


class SessionReporter:
    """Print connection details, probe SSH and optionally connect."""

    def __init__(
        self,
        console: Console | None = None,
        connector: type[SSHConnector] = SSHConnector,
        port_attempts: int | None = 20,
        port_interval: float = 10,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.console = console or Console()
        self.connector = connector
        self.port_attempts = port_attempts
        self.port_interval = port_interval
        self.sleep = sleep

    @staticmethod
    def format_details(details: ConnectionDetails) -> str:
        """Plain-text connection block, including the suggested command."""
        suggested = SSHConnector.build_manual_command(details.ssh_config)
        return "\n".join(
            [
                "Connect to your VM with the following details:",
                f"  Resource Group : {details.resource_group}",
                f"  VM Name        : {details.vm_name}",
                f"  Location       : {details.region}",
                f"  Public IP      : {details.public_ip}",
                f"  Username       : {details.credential.username}",
                f"  Password       : {details.credential.password}",
                "",
                "Suggested SSH command:",
                f"  {suggested}",
            ]
        )

    def print_details(self, details: ConnectionDetails) -> None:
        table = Table.grid(padding=(0, 2))
        table.add_column(style="bold")
        table.add_column()
        table.add_row("Resource Group", details.resource_group)
        table.add_row("VM Name", details.vm_name)
        table.add_row("Location", details.region)
        table.add_row("Public IP", details.public_ip)
        table.add_row("Username", details.credential.username)
        table.add_row("Password", details.credential.password)
        table.add_row("", "")
        table.add_row("Suggested SSH command", "")
        table.add_row("", SSHConnector.build_manual_command(details.ssh_config))

        # The password is shown once, on the operator's terminal only
        self.console.print(
            Panel(table, title="Connect to your VM", border_style="green", expand=False)
        )

    def _ensure_reachable(self, details: ConnectionDetails) -> None:
        """Probe the SSH port; ``port_attempts=None`` waits without a bound."""
        if not self.connector.wait_for_port(
            details.public_ip,
            attempts=self.port_attempts,
            interval=self.port_interval,
            sleep=self.sleep,
        ):
            raise ConnectivityTimeout(
                f"SSH port on {details.public_ip} did not open after {self.port_attempts} attempts"
            )

    def report(self, details: ConnectionDetails, connect: bool = True) -> SessionOutcome:
        """Print details, then try the interactive session.

        Returns:
            SessionOutcome describing what happened
        """
        self.print_details(details)
        if not connect:
            return SessionOutcome.SKIPPED

        if not details.public_ip:
            logger.warning(
                f"No public IP reported for {details.vm_name}. Skipping automatic SSH; "
                "look the address up in the portal and use the suggested command."
            )
            return SessionOutcome.NO_ADDRESS

        try:
            self._ensure_reachable(details)
        except ConnectivityTimeout as e:
            logger.warning(f"{e}. Skipping automatic SSH.")
            return SessionOutcome.PORT_CLOSED

        try:
            exit_code = self.connector.connect_with_password(details.ssh_config)
        except SSHConnectionError as e:
            logger.warning(f"{e}; showing SSH command instead of auto-connecting.")
            self.print_details(details)
            return SessionOutcome.MANUAL

        if exit_code not in (0, 130):
            logger.error("Automatic SSH attempt failed. Use the suggested command manually.")
            self.print_details(details)
            return SessionOutcome.SESSION_FAILED

        logger.info("SSH session closed.")
        return SessionOutcome.CONNECTED


__all__ = ["ConnectionDetails", "SessionOutcome", "SessionReporter"]
