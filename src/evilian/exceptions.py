"""Exception hierarchy for evilian.

Every error carries the process exit code the CLI uses when it surfaces.
Errors raised after the VM exists carry the resource group and VM name so
the operator knows what is left behind for inspection.
"""


class EvilianError(Exception):
    """Base exception for evilian errors."""

    exit_code = 1

    # Set once the VM exists, so the operator knows what was left behind
    resource_group: str | None = None
    vm_name: str | None = None

    def with_resources(self, resource_group: str, vm_name: str) -> "EvilianError":
        self.resource_group = resource_group
        self.vm_name = vm_name
        return self


class ValidationError(EvilianError):
    """Raised when operator input is malformed. No side effects have happened yet."""

    exit_code = 2


class InvalidRange(ValidationError):
    """Raised when the allowed range is not a dotted quad with optional /0-/32."""

    pass


class InvalidName(ValidationError):
    """Raised when the project name is empty or has characters outside [a-z0-9-]."""

    pass


class PreconditionError(EvilianError):
    """Raised when the environment does not allow the run to start.

    Examples: the target resource group already exists, the Azure CLI is
    missing, or the operator is not logged in.
    """

    exit_code = 3


class ControlPlaneError(EvilianError):
    """Raised when an Azure control-plane call fails."""

    exit_code = 4

    def __init__(self, code: str, message: str):
        self.code = code
        self.message = message
        super().__init__(f"[{code}] {message}")


class ConvergenceTimeout(EvilianError):
    """Raised when a polling wait point exhausts its attempts.

    Only hard wait points (VM power state, guest agent) raise this; soft
    ones log a warning and let the run continue.
    """

    exit_code = 5

    def __init__(self, wait_point: str, attempts: int, hard: bool = True, last_value=None):
        self.wait_point = wait_point
        self.attempts = attempts
        self.hard = hard
        self.last_value = last_value
        kind = "hard" if hard else "soft"
        super().__init__(
            f"Timed out waiting for {wait_point} after {attempts} attempts "
            f"({kind}, last value: {last_value!r})"
        )


class RemoteScriptFailure(EvilianError):
    """Raised when the bootstrap script exits non-zero inside the VM."""

    exit_code = 6

    def __init__(self, exit_status: int, output: str):
        self.exit_status = exit_status
        self.output = output
        super().__init__(f"Bootstrap script failed with exit status {exit_status}")


class ConnectivityTimeout(EvilianError):
    """Raised when the administrative port never opens.

    The session reporter catches this and falls back to printing manual
    connection instructions.
    """

    pass


__all__ = [
    "ConnectivityTimeout",
    "ControlPlaneError",
    "ConvergenceTimeout",
    "EvilianError",
    "InvalidName",
    "InvalidRange",
    "PreconditionError",
    "RemoteScriptFailure",
    "ValidationError",
]
