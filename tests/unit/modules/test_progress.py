"""Unit tests for progress display module."""

import io

from evilian.modules.progress import ProgressDisplay, ProgressStage


class TestProgressDisplay:
    def test_start_and_complete(self):
        output = io.StringIO()
        progress = ProgressDisplay(output_file=output, color=False)

        progress.start_operation("Creating VM")
        progress.complete(success=True, message="VM created")

        lines = output.getvalue().splitlines()
        assert lines[0] == "► Creating VM..."
        assert lines[1].startswith("✓ VM created (")
        assert progress.current_operation is None

    def test_failure_default_message(self):
        output = io.StringIO()
        progress = ProgressDisplay(output_file=output, color=False, use_unicode=False)

        progress.start_operation("Bootstrapping")
        progress.complete(success=False)

        assert "FAIL Bootstrapping failed" in output.getvalue()

    def test_waiting_and_warning_stages(self):
        output = io.StringIO()
        progress = ProgressDisplay(output_file=output, color=False)

        progress.update("Waiting for agent", ProgressStage.WAITING)
        progress.warning("apt still busy")

        stages = [u.stage for u in progress.updates]
        assert stages == [ProgressStage.WAITING, ProgressStage.WARNING]
        assert "⚠ apt still busy" in output.getvalue()

    def test_color_codes_when_forced(self):
        output = io.StringIO()
        ProgressDisplay(output_file=output, color=True).update("x", ProgressStage.COMPLETED)
        assert "\x1b[32m" in output.getvalue()

    def test_no_color_codes_when_disabled(self):
        output = io.StringIO()
        ProgressDisplay(output_file=output, color=False).update("x", ProgressStage.FAILED)
        assert "\x1b[" not in output.getvalue()

    def test_format_duration(self):
        progress = ProgressDisplay(output_file=io.StringIO())
        assert progress._format_duration(12.34) == "12.3s"
        assert progress._format_duration(150) == "2m 30s"
        assert progress._format_duration(3720) == "1h 2m"
