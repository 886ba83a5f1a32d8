"""
Shared test fixtures and configuration for evilian tests.

This module provides common fixtures used across all test types:
- An in-memory control plane
- Validated provisioning requests
- Poll settings with tiny bounds and a recording sleep
- Progress display writing to a buffer
"""

import io

import pytest

from evilian.credentials import VmCredential
from evilian.modules.interaction_handler import MockInteractionHandler
from evilian.modules.progress import ProgressDisplay
from evilian.modules.validation import InputValidator
from evilian.poll_config import PollSettings
from tests.mocks.control_plane_mock import FakeControlPlane

# ============================================================================
# ENVIRONMENT
# ============================================================================


@pytest.fixture(autouse=True)
def isolated_environment(tmp_path, monkeypatch):
    """Keep tests away from the operator's Azure login and overrides."""
    monkeypatch.setenv("AZURE_CONFIG_DIR", str(tmp_path / "azure"))
    for name in (
        "EVILIAN_VM_RUNNING_INTERVAL",
        "EVILIAN_VM_RUNNING_MAX_ATTEMPTS",
        "EVILIAN_AGENT_READY_INTERVAL",
        "EVILIAN_AGENT_READY_MAX_ATTEMPTS",
        "EVILIAN_PKG_IDLE_INTERVAL",
        "EVILIAN_PKG_IDLE_MAX_ATTEMPTS",
        "EVILIAN_SSH_PORT_INTERVAL",
        "EVILIAN_SSH_PORT_MAX_ATTEMPTS",
        "EVILIAN_SETTLE_SECONDS",
    ):
        monkeypatch.delenv(name, raising=False)


# ============================================================================
# DOMAIN FIXTURES
# ============================================================================


@pytest.fixture
def fake_control_plane():
    """Control plane where everything converges on the first query."""
    return FakeControlPlane()


@pytest.fixture
def request_a():
    """Validated request for project Evil123 from 203.0.113.5/32."""
    return InputValidator().build_request("203.0.113.5/32", "Evil123")


@pytest.fixture
def credential():
    return VmCredential(username="evilab12cd", password="Str0ng!Passw0rd#Example1")


@pytest.fixture
def sleeps():
    """List that records every requested sleep duration."""
    return []


@pytest.fixture
def fake_sleep(sleeps):
    return sleeps.append


@pytest.fixture
def poll_settings():
    """Short bounds so exhaustion tests finish instantly."""
    return PollSettings(
        vm_running_interval=15,
        vm_running_max_attempts=None,
        agent_ready_interval=30,
        agent_ready_max_attempts=None,
        package_manager_interval=20,
        package_manager_max_attempts=18,
        ssh_port_interval=10,
        ssh_port_max_attempts=3,
        settle_seconds=60,
    )


@pytest.fixture
def progress_output():
    return io.StringIO()


@pytest.fixture
def quiet_progress(progress_output):
    return ProgressDisplay(output_file=progress_output, color=False)


@pytest.fixture
def decline_all():
    """Interaction handler that answers No to every prompt."""
    return MockInteractionHandler(confirm_responses=[False] * 10)
