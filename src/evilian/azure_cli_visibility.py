"""Azure CLI command visibility.

Every ``az`` invocation is shown before it runs so the operator can see what
the tool is doing to their subscription:
- Display exact commands before execution (with sanitization)
- TTY vs non-TTY environment detection
- Interruptible execution (Ctrl+C propagates to the caller)

Security:
- Admin passwords are redacted and script bodies summarized before display
- The child process inherits AZURE_CONFIG_DIR so the operator's login is used

Usage:
    >>> executor = AzureCLIExecutor()
    >>> result = executor.execute(["az", "group", "list"])
    Executing: az group list
"""

import logging
import os
import subprocess
import sys
from pathlib import Path
from typing import Any

from rich.console import Console
from rich.text import Text

from evilian.security import AzureCommandSanitizer

logger = logging.getLogger(__name__)


class TTYDetector:
    """Detect TTY vs non-TTY environments.

    Determines whether colored command echo should be used or plain text
    (e.g. when output is piped into a log file).
    """

    @staticmethod
    def is_tty() -> bool:
        ci_env_vars = ["CI", "GITHUB_ACTIONS", "TRAVIS", "CIRCLECI", "GITLAB_CI"]
        if any(os.getenv(var) for var in ci_env_vars):
            return False

        try:
            return sys.stdout.isatty()
        except AttributeError:
            return False

    @staticmethod
    def supports_color() -> bool:
        if os.getenv("NO_COLOR"):
            return False
        return TTYDetector.is_tty()


class CommandDisplayFormatter:
    """Format sanitized commands for display in the terminal."""

    def __init__(self, use_color: bool | None = None):
        self.use_color = use_color if use_color is not None else TTYDetector.supports_color()

    def format(self, command: list[str]) -> Text | str:
        """Format a sanitized command.

        Examples:
            >>> CommandDisplayFormatter(use_color=False).format(["az", "vm", "list"])
            'Executing: az vm list'
        """
        cmd_str = " ".join(command)
        if self.use_color:
            text = Text("Executing: ", style="bold blue")
            text.append(cmd_str, style="cyan")
            return text
        return f"Executing: {cmd_str}"


class AzureCLIExecutor:
    """Execute Azure CLI commands with visibility.

    Examples:
        >>> executor = AzureCLIExecutor(show_commands=False)
        >>> result = executor.execute(["az", "account", "show"])
        >>> print(result["returncode"])
        0
    """

    def __init__(
        self,
        azure_config_dir: Path | str | None = None,
        show_commands: bool = True,
        timeout: int | None = None,
        console: Console | None = None,
    ):
        """Initialize Azure CLI executor.

        Args:
            azure_config_dir: Value passed to child processes as AZURE_CONFIG_DIR
                (None leaves the inherited environment alone)
            show_commands: Whether to echo each command before it runs
            timeout: Command timeout in seconds (None = no timeout)
            console: Rich console used for the echo

        Raises:
            ValueError: If timeout is negative
        """
        if timeout is not None and timeout < 0:
            raise ValueError("Timeout must be non-negative")

        self.azure_config_dir = str(azure_config_dir) if azure_config_dir else None
        self.show_commands = show_commands
        self.timeout = timeout
        self.console = console or Console()
        self.formatter = CommandDisplayFormatter()

    def _child_env(self) -> dict[str, str]:
        env = os.environ.copy()
        if self.azure_config_dir:
            env["AZURE_CONFIG_DIR"] = self.azure_config_dir
        return env

    def display(self, command: list[str]) -> None:
        """Echo the sanitized form of a command."""
        formatted = self.formatter.format(AzureCommandSanitizer.sanitize_args(command))
        if isinstance(formatted, Text):
            self.console.print(formatted)
        else:
            print(formatted, flush=True)

    def execute(self, command: list[str]) -> dict[str, Any]:
        """Execute an Azure CLI command.

        Args:
            command: Command to execute as list (e.g., ["az", "vm", "list"])

        Returns:
            Dictionary with execution results:
                - returncode: Exit code (0 = success)
                - stdout: Standard output
                - stderr: Standard error
                - success: Boolean success flag
                - command: Sanitized command string
                - error: Error message (if failed)

        Raises:
            KeyboardInterrupt: If user cancels with Ctrl+C
        """
        if not command:
            raise TypeError("Command cannot be None or empty")

        safe_command = " ".join(AzureCommandSanitizer.sanitize_args(command))
        if self.show_commands:
            self.display(command)
        logger.debug(f"Running: {safe_command}")

        try:
            result = subprocess.run(
                command,
                capture_output=True,
                text=True,
                timeout=self.timeout,
                check=False,
                env=self._child_env(),
            )
        except subprocess.TimeoutExpired:
            message = f"Command timeout after {self.timeout} seconds"
            return {
                "returncode": -1,
                "stdout": "",
                "stderr": message,
                "success": False,
                "command": safe_command,
                "error": message,
            }
        except FileNotFoundError as e:
            message = f"Command not found: {e}"
            return {
                "returncode": -1,
                "stdout": "",
                "stderr": message,
                "success": False,
                "command": safe_command,
                "error": message,
            }

        return {
            "returncode": result.returncode,
            "stdout": result.stdout,
            "stderr": result.stderr,
            "success": result.returncode == 0,
            "command": safe_command,
            "error": result.stderr if result.returncode != 0 else None,
        }


__all__ = ["AzureCLIExecutor", "CommandDisplayFormatter", "TTYDetector"]
