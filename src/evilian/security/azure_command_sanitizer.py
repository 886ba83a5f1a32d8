"""Azure CLI command sanitization for secure display.

Every control-plane command is echoed before it runs and may end up in a
log or an error message. The VM admin password travels as an argument to
``az vm create`` and the bootstrap script travels as an argument to
``az vm run-command invoke``, so both are rewritten before display.

Security Controls:
- Parameter-based redaction (--admin-password, --password, -p for sshpass)
- Script bodies summarized instead of echoed (--scripts)
- Terminal escape sequences stripped

Usage:
    >>> from evilian.security import AzureCommandSanitizer
    >>> AzureCommandSanitizer.sanitize_args(["az", "vm", "create", "--admin-password", "S3cret!"])
    ['az', 'vm', 'create', '--admin-password', '[REDACTED]']
"""

import re
from re import Pattern
from typing import ClassVar


class AzureCommandSanitizer:
    """Sanitize Azure CLI commands for safe display and logging.

    Examples:
        >>> AzureCommandSanitizer.sanitize("az vm create --admin-password MyPass")
        'az vm create --admin-password [REDACTED]'
    """

    REDACTED = "[REDACTED]"

    # Matched case-insensitively (lowercase only in set)
    SENSITIVE_PARAMS: ClassVar[set[str]] = {
        "--password",
        "--admin-password",
        "--client-secret",
        "--secret",
        "--token",
        "--custom-data",
        "--user-data",
    }

    # Parameters whose value is a whole script
    SCRIPT_PARAMS: ClassVar[set[str]] = {"--scripts"}

    # sshpass takes the password as a short option
    SHORT_SENSITIVE_FLAGS: ClassVar[dict[str, set[str]]] = {"sshpass": {"-p"}}

    PARAM_VALUE_QUOTED_PATTERN: ClassVar[Pattern] = re.compile(
        r'(--[\w-]+)(?:\s+|=)(["' "'" r'])([^"' "'" r']+)\2',
        re.IGNORECASE,
    )
    PARAM_VALUE_UNQUOTED_PATTERN: ClassVar[Pattern] = re.compile(
        r'(--[\w-]+)(?:\s+|=)([^\s"' "'" r'-][^\s]*)',
        re.IGNORECASE,
    )

    ANSI_ESCAPE_PATTERN: ClassVar[Pattern] = re.compile(r"\x1B(?:[@-Z\\-_]|\[[0-?]*[ -/]*[@-~])")

    @classmethod
    def sanitize_args(cls, args: list[str]) -> list[str]:
        """Return a copy of an argument vector with secrets and scripts replaced.

        Args:
            args: Command as passed to subprocess (no shell quoting)

        Returns:
            New list safe to display

        Example:
            >>> AzureCommandSanitizer.sanitize_args(["az", "x", "--scripts", "a\\nb"])
            ['az', 'x', '--scripts', '[script: 2 lines]']
        """
        program = args[0].rsplit("/", 1)[-1] if args else ""
        short_flags = cls.SHORT_SENSITIVE_FLAGS.get(program, set())

        result: list[str] = []
        redact_next = False
        summarize_next = False
        for arg in args:
            if redact_next:
                result.append(cls.REDACTED)
                redact_next = False
                continue
            if summarize_next:
                result.append(cls.summarize_script(arg))
                summarize_next = False
                continue

            name, sep, value = arg.partition("=")
            lowered = name.lower()
            if lowered in cls.SENSITIVE_PARAMS or arg in short_flags:
                if sep:
                    result.append(f"{name}={cls.REDACTED}")
                else:
                    result.append(arg)
                    redact_next = True
                continue
            if lowered in cls.SCRIPT_PARAMS:
                if sep:
                    result.append(f"{name}={cls.summarize_script(value)}")
                else:
                    result.append(arg)
                    summarize_next = True
                continue

            result.append(cls._sanitize_terminal_escapes(arg))
        return result

    @classmethod
    def sanitize(cls, command: str) -> str:
        """Sanitize a flat command string (or any text that may quote one).

        Examples:
            >>> AzureCommandSanitizer.sanitize("az vm create --admin-password Pass123")
            'az vm create --admin-password [REDACTED]'
        """
        if not isinstance(command, str):
            command = str(command)

        result = cls._sanitize_terminal_escapes(command)

        def replace_quoted(match: re.Match) -> str:
            if match.group(1).lower() in cls.SENSITIVE_PARAMS:
                quote = match.group(2)
                separator = "=" if match.group(0)[len(match.group(1))] == "=" else " "
                return f"{match.group(1)}{separator}{quote}{cls.REDACTED}{quote}"
            return match.group(0)

        def replace_unquoted(match: re.Match) -> str:
            if match.group(1).lower() in cls.SENSITIVE_PARAMS:
                separator = "=" if match.group(0)[len(match.group(1))] == "=" else " "
                return f"{match.group(1)}{separator}{cls.REDACTED}"
            return match.group(0)

        result = cls.PARAM_VALUE_QUOTED_PATTERN.sub(replace_quoted, result)
        result = cls.PARAM_VALUE_UNQUOTED_PATTERN.sub(replace_unquoted, result)
        return result

    @classmethod
    def scrub_secret(cls, text: str, secret: str | None) -> str:
        """Remove a known secret value from arbitrary text (e.g. Azure stderr)."""
        if not secret:
            return text
        return text.replace(secret, cls.REDACTED)

    @staticmethod
    def summarize_script(script: str) -> str:
        lines = script.count("\n") + 1 if script else 0
        return f"[script: {lines} lines]"

    @classmethod
    def _sanitize_terminal_escapes(cls, text: str) -> str:
        """Remove ANSI escape sequences and control characters except newline/tab."""
        text = cls.ANSI_ESCAPE_PATTERN.sub("", text)
        return "".join(char for char in text if char in "\n\t" or ord(char) >= 32)


__all__ = ["AzureCommandSanitizer"]
