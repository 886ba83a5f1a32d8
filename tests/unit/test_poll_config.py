"""Unit tests for poll settings."""

import pytest

from evilian.poll_config import PollSettings


class TestPollSettings:
    def test_defaults_match_wait_points(self):
        settings = PollSettings()
        assert settings.vm_running_interval == 15
        assert settings.vm_running_max_attempts is None
        assert settings.agent_ready_interval == 30
        assert settings.agent_ready_max_attempts is None
        assert settings.package_manager_interval == 20
        assert settings.package_manager_max_attempts == 18
        assert settings.ssh_port_interval == 10
        assert settings.ssh_port_max_attempts == 20
        assert settings.settle_seconds == 60

    def test_from_environment_without_overrides(self):
        assert PollSettings.from_environment() == PollSettings()

    def test_from_environment_overrides(self, monkeypatch):
        monkeypatch.setenv("EVILIAN_VM_RUNNING_INTERVAL", "5")
        monkeypatch.setenv("EVILIAN_VM_RUNNING_MAX_ATTEMPTS", "40")
        monkeypatch.setenv("EVILIAN_PKG_IDLE_MAX_ATTEMPTS", "3")
        monkeypatch.setenv("EVILIAN_SETTLE_SECONDS", "0")

        settings = PollSettings.from_environment()

        assert settings.vm_running_interval == 5.0
        assert settings.vm_running_max_attempts == 40
        assert settings.package_manager_max_attempts == 3
        assert settings.settle_seconds == 0.0
        assert settings.agent_ready_interval == 30

    def test_zero_attempts_means_unbounded(self, monkeypatch):
        monkeypatch.setenv("EVILIAN_PKG_IDLE_MAX_ATTEMPTS", "0")
        assert PollSettings.from_environment().package_manager_max_attempts is None

    def test_invalid_value_raises(self, monkeypatch):
        monkeypatch.setenv("EVILIAN_SSH_PORT_MAX_ATTEMPTS", "many")
        with pytest.raises(ValueError):
            PollSettings.from_environment()
