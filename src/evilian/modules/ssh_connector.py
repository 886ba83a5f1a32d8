"""
SSH Connector Module

Probe the VM's SSH port and open the interactive ``screen`` session with
the generated password.

Security Requirements:
- Password handed to sshpass through the environment (SSHPASS), not argv
- Timeout enforcement
- No credential logging
"""

import logging
import os
import shlex
import shutil
import socket
import subprocess
import time
from collections.abc import Callable
from dataclasses import dataclass, field

from evilian.convergence import poll

logger = logging.getLogger(__name__)

REMOTE_SESSION_COMMAND = "screen -DR"


@dataclass
class SSHConfig:
    """SSH connection configuration."""

    host: str
    user: str
    password: str = field(repr=False)
    port: int = 22


class SSHConnectionError(Exception):
    """Raised when the interactive session cannot be started."""

    pass


class SSHConnector:
    """
    Manage the password-authenticated SSH session to the VM.

    Security:
    - Host key checking disabled (the VM is brand new)
    - Connection timeout enforced
    """

    DEFAULT_PORT = 22
    CONNECT_TIMEOUT = 10

    @classmethod
    def _check_port_open(cls, host: str, port: int, timeout: float = 5.0) -> bool:
        """
        Check if TCP port is open.

        Security: Non-blocking socket check
        """
        try:
            with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
                sock.settimeout(timeout)
                return sock.connect_ex((host, port)) == 0
        except (TimeoutError, OSError):
            return False

    @classmethod
    def wait_for_port(
        cls,
        host: str,
        port: int = DEFAULT_PORT,
        attempts: int | None = 20,
        interval: float = 10,
        sleep: Callable[[float], None] = time.sleep,
    ) -> bool:
        """
        Wait for the SSH port to accept TCP connections.

        Args:
            host: Target IP
            port: SSH port
            attempts: Maximum number of probes, or None for unbounded
            interval: Seconds between probes
            sleep: Sleep function (injectable for tests)

        Returns:
            bool: True if the port opened, False if attempts ran out

        Example:
            >>> if SSHConnector.wait_for_port("20.12.34.56"):
            ...     print("SSH is reachable")
        """
        result = poll(
            query=lambda: cls._check_port_open(host, port),
            is_satisfied=bool,
            interval=interval,
            max_attempts=attempts,
            sleep=sleep,
            describe=f"TCP port {port} on {host}",
        )
        if result.satisfied:
            logger.info(f"Port {port} reachable on {host} (after {result.attempts} attempts)")
        else:
            logger.warning(f"Port {port} on {host} still closed after {result.attempts} attempts")
        return result.satisfied

    @classmethod
    def build_manual_command(cls, config: SSHConfig) -> str:
        """
        The connection command shown to the operator.

        Example:
            >>> SSHConnector.build_manual_command(SSHConfig("1.2.3.4", "evilab12cd", "pw"))
            'sshpass -p "pw" ssh -o StrictHostKeyChecking=no "evilab12cd@1.2.3.4" -t "screen -DR"'
        """
        return (
            f'sshpass -p "{config.password}" ssh -o StrictHostKeyChecking=no '
            f'"{config.user}@{config.host}" -t "{REMOTE_SESSION_COMMAND}"'
        )

    @classmethod
    def build_ssh_command(
        cls, config: SSHConfig, remote_command: str = REMOTE_SESSION_COMMAND
    ) -> list[str]:
        """
        Build the sshpass + ssh argument list.

        The password is read by ``sshpass -e`` from SSHPASS in the child's
        environment, so it never shows up in the process list.

        Security:
        - Uses argument list (no shell=True)
        """
        args = [
            "sshpass",
            "-e",
            "ssh",
            "-p",
            str(config.port),
            "-o",
            "StrictHostKeyChecking=no",
            "-o",
            "UserKnownHostsFile=/dev/null",
            "-o",
            f"ConnectTimeout={cls.CONNECT_TIMEOUT}",
            f"{config.user}@{config.host}",
            "-t",
            remote_command,
        ]
        return args

    @classmethod
    def connect_with_password(cls, config: SSHConfig) -> int:
        """
        Open the interactive session (blocks until it ends).

        Returns:
            int: ssh exit code (130 if interrupted)

        Raises:
            SSHConnectionError: If sshpass/ssh are missing or cannot be started
        """
        for tool in ("sshpass", "ssh"):
            if not shutil.which(tool):
                raise SSHConnectionError(f"{tool} is not installed")

        args = cls.build_ssh_command(config)
        logger.info(f"Connecting to {config.user}@{config.host}...")
        logger.debug(f"Running: {shlex.join(args)}")

        env = os.environ.copy()
        env["SSHPASS"] = config.password
        try:
            result = subprocess.run(args, env=env)
        except KeyboardInterrupt:
            logger.info("SSH session interrupted by user")
            return 130
        except OSError as e:
            raise SSHConnectionError(f"SSH connection failed: {e}") from e

        if result.returncode == 0:
            logger.info("SSH session ended successfully")
        else:
            logger.warning(f"SSH session ended with code {result.returncode}")
        return result.returncode


__all__ = ["REMOTE_SESSION_COMMAND", "SSHConfig", "SSHConnectionError", "SSHConnector"]
