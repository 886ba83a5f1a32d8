"""Configuration for convergence polling.

Each wait point has a fixed interval and an attempt bound; the effective
timeout of a wait point is attempts x interval. A bound of None means the
wait is unbounded (VM boot time is unpredictable, so the power-state and
agent waits never give up on their own).

Design Philosophy:
- Ruthless simplicity: Single configuration dataclass
- Sensible defaults: Match the timings the tool has always used
- Environment-aware: Can be overridden via env vars
"""

import os
from dataclasses import dataclass


def _attempts_from_env(name: str, default: int | None) -> int | None:
    raw = os.getenv(name)
    if raw is None or raw == "":
        return default
    value = int(raw)
    # 0 (or a negative number) disables the bound
    return value if value > 0 else None


@dataclass
class PollSettings:
    """Polling intervals (seconds) and attempt bounds for every wait point."""

    # VM power state after create/restart (hard)
    vm_running_interval: float = 15.0
    vm_running_max_attempts: int | None = None

    # Guest agent readiness (hard)
    agent_ready_interval: float = 30.0
    agent_ready_max_attempts: int | None = None

    # Remote apt/dpkg idleness (soft)
    package_manager_interval: float = 20.0
    package_manager_max_attempts: int | None = 18

    # TCP reachability of the administrative port (non-fatal)
    ssh_port_interval: float = 10.0
    ssh_port_max_attempts: int | None = 20

    # Pause between the bootstrap and the reboot
    settle_seconds: float = 60.0

    @classmethod
    def from_environment(cls) -> "PollSettings":
        """Load poll settings from environment variables.

        Environment variables (all optional):
            EVILIAN_VM_RUNNING_INTERVAL / EVILIAN_VM_RUNNING_MAX_ATTEMPTS
            EVILIAN_AGENT_READY_INTERVAL / EVILIAN_AGENT_READY_MAX_ATTEMPTS
            EVILIAN_PKG_IDLE_INTERVAL / EVILIAN_PKG_IDLE_MAX_ATTEMPTS
            EVILIAN_SSH_PORT_INTERVAL / EVILIAN_SSH_PORT_MAX_ATTEMPTS
            EVILIAN_SETTLE_SECONDS

        A max-attempts value of 0 means unbounded.

        Returns:
            PollSettings with values from environment or defaults
        """
        defaults = cls()
        return cls(
            vm_running_interval=float(
                os.getenv("EVILIAN_VM_RUNNING_INTERVAL", str(defaults.vm_running_interval))
            ),
            vm_running_max_attempts=_attempts_from_env(
                "EVILIAN_VM_RUNNING_MAX_ATTEMPTS", defaults.vm_running_max_attempts
            ),
            agent_ready_interval=float(
                os.getenv("EVILIAN_AGENT_READY_INTERVAL", str(defaults.agent_ready_interval))
            ),
            agent_ready_max_attempts=_attempts_from_env(
                "EVILIAN_AGENT_READY_MAX_ATTEMPTS", defaults.agent_ready_max_attempts
            ),
            package_manager_interval=float(
                os.getenv("EVILIAN_PKG_IDLE_INTERVAL", str(defaults.package_manager_interval))
            ),
            package_manager_max_attempts=_attempts_from_env(
                "EVILIAN_PKG_IDLE_MAX_ATTEMPTS", defaults.package_manager_max_attempts
            ),
            ssh_port_interval=float(
                os.getenv("EVILIAN_SSH_PORT_INTERVAL", str(defaults.ssh_port_interval))
            ),
            ssh_port_max_attempts=_attempts_from_env(
                "EVILIAN_SSH_PORT_MAX_ATTEMPTS", defaults.ssh_port_max_attempts
            ),
            settle_seconds=float(os.getenv("EVILIAN_SETTLE_SECONDS", str(defaults.settle_seconds))),
        )


__all__ = ["PollSettings"]
