"""
Prerequisites Checker Module

Verifies the external tools a run shells out to are installed.

Security Requirements:
- Read-only system checks
- No shell=True in subprocess calls
"""

import logging
import shutil
from dataclasses import dataclass
from typing import ClassVar

from evilian.exceptions import PreconditionError

logger = logging.getLogger(__name__)


@dataclass
class PrerequisiteResult:
    """Result of prerequisite checks."""

    all_available: bool
    missing: list[str]
    available: list[str]
    missing_optional: list[str]


class PrerequisiteChecker:
    """
    Check required external tools are installed.

    Required tools:
    - az (Azure CLI)

    Optional tools (only needed for the automatic SSH session):
    - ssh
    - sshpass
    """

    REQUIRED_TOOLS: ClassVar[list[str]] = ["az"]
    OPTIONAL_TOOLS: ClassVar[list[str]] = ["ssh", "sshpass"]

    INSTALL_HINTS: ClassVar[dict[str, str]] = {
        "az": "https://learn.microsoft.com/cli/azure/install-azure-cli",
        "ssh": "install the OpenSSH client (e.g. apt install openssh-client)",
        "sshpass": "install sshpass (e.g. apt install sshpass / brew install sshpass)",
    }

    @classmethod
    def check_tool(cls, tool_name: str) -> bool:
        """
        Check if a single tool is available in PATH.

        Security: Uses shutil.which (safe, no subprocess)
        """
        result = shutil.which(tool_name)
        if result:
            logger.debug(f"Found {tool_name} at {result}")
            return True
        logger.debug(f"Tool not found: {tool_name}")
        return False

    @classmethod
    def check_all(cls) -> PrerequisiteResult:
        """
        Check all prerequisites and return comprehensive result.

        Example:
            >>> result = PrerequisiteChecker.check_all()
            >>> if not result.all_available:
            ...     print(f"Missing: {result.missing}")
        """
        missing: list[str] = []
        available: list[str] = []
        missing_optional: list[str] = []

        for tool in cls.REQUIRED_TOOLS:
            if cls.check_tool(tool):
                available.append(tool)
            else:
                missing.append(tool)

        # Optional tools only warn
        for tool in cls.OPTIONAL_TOOLS:
            if cls.check_tool(tool):
                available.append(tool)
            else:
                missing_optional.append(tool)
                logger.warning(
                    f"Optional tool not found: {tool} ({cls.INSTALL_HINTS[tool]}); "
                    "the SSH command will be printed instead of run"
                )

        return PrerequisiteResult(
            all_available=not missing,
            missing=missing,
            available=available,
            missing_optional=missing_optional,
        )

    @classmethod
    def format_missing_message(cls, missing: list[str]) -> str:
        if not missing:
            return "All prerequisites are installed."
        lines = ["Missing required tools:"]
        for tool in missing:
            lines.append(f"  - {tool}: {cls.INSTALL_HINTS.get(tool, 'install it and retry')}")
        return "\n".join(lines)

    @classmethod
    def require(cls) -> PrerequisiteResult:
        """Check prerequisites and raise if a required tool is missing.

        Raises:
            PreconditionError: If any required tool is missing
        """
        result = cls.check_all()
        if not result.all_available:
            raise PreconditionError(cls.format_missing_message(result.missing))
        return result


__all__ = ["PrerequisiteChecker", "PrerequisiteResult"]
