"""
Progress Display Module

Show real-time progress to the operator during a run. Stages map to the
colors the tool has always used: blue for started, yellow for waiting and
warnings, green for done, red for failures.

Security Requirements:
- No credential exposure in output
- Safe output formatting
"""

import logging
import sys
import time
from dataclasses import dataclass
from enum import Enum
from typing import Optional

import click

logger = logging.getLogger(__name__)


class ProgressStage(Enum):
    """Progress stage indicators."""

    STARTED = "started"
    WAITING = "waiting"
    COMPLETED = "completed"
    FAILED = "failed"
    WARNING = "warning"


@dataclass
class ProgressUpdate:
    """Progress update information."""

    stage: ProgressStage
    message: str
    timestamp: float
    operation: str


class ProgressDisplay:
    """
    Real-time progress display for long operations.

    Features:
    - Stage-based updates
    - Time tracking
    - Colored console output (click.style)
    """

    SYMBOLS = {
        ProgressStage.STARTED: "►",
        ProgressStage.WAITING: "⧗",
        ProgressStage.COMPLETED: "✓",
        ProgressStage.FAILED: "✗",
        ProgressStage.WARNING: "⚠",
    }

    # Fallback ASCII symbols (if Unicode not supported)
    ASCII_SYMBOLS = {
        ProgressStage.STARTED: ">",
        ProgressStage.WAITING: "..",
        ProgressStage.COMPLETED: "OK",
        ProgressStage.FAILED: "FAIL",
        ProgressStage.WARNING: "WARN",
    }

    COLORS = {
        ProgressStage.STARTED: "blue",
        ProgressStage.WAITING: "yellow",
        ProgressStage.COMPLETED: "green",
        ProgressStage.FAILED: "red",
        ProgressStage.WARNING: "yellow",
    }

    def __init__(self, use_unicode: bool = True, output_file=None, color: Optional[bool] = None):
        """
        Initialize progress display.

        Args:
            use_unicode: Use Unicode symbols (True) or ASCII (False)
            output_file: Output file object (default: sys.stdout)
            color: Force color on/off (None lets click decide from the stream)
        """
        self.use_unicode = use_unicode
        self.output_file = output_file or sys.stdout
        self.color = color
        self.current_operation: Optional[str] = None
        self.start_time: Optional[float] = None
        self.updates: list[ProgressUpdate] = []

    def start_operation(self, name: str) -> None:
        """
        Begin showing progress for an operation.

        Example:
            >>> progress = ProgressDisplay()
            >>> progress.start_operation("Creating VM")
        """
        self.current_operation = name
        self.start_time = time.time()
        self.update(f"{name}...", ProgressStage.STARTED)

    def update(self, message: str, stage: ProgressStage) -> None:
        update = ProgressUpdate(
            stage=stage,
            message=message,
            timestamp=time.time(),
            operation=self.current_operation or "unknown",
        )
        self.updates.append(update)
        self._print(update)

    def warning(self, message: str) -> None:
        self.update(message, ProgressStage.WARNING)

    def complete(self, success: bool = True, message: Optional[str] = None) -> None:
        """
        Mark operation complete.

        Example:
            >>> progress.complete(success=True, message="VM created successfully")
        """
        if success:
            stage = ProgressStage.COMPLETED
            default_message = f"{self.current_operation} completed"
        else:
            stage = ProgressStage.FAILED
            default_message = f"{self.current_operation} failed"

        final_message = message or default_message

        if self.start_time:
            elapsed = time.time() - self.start_time
            final_message += f" ({self._format_duration(elapsed)})"

        self.update(final_message, stage)

        self.current_operation = None
        self.start_time = None

    def _format_update(self, update: ProgressUpdate) -> str:
        symbols = self.SYMBOLS if self.use_unicode else self.ASCII_SYMBOLS
        symbol = symbols.get(update.stage, "")
        return f"{symbol} {update.message}"

    def _format_duration(self, seconds: float) -> str:
        """
        Format duration in human-readable format (e.g., "2m 30s").
        """
        if seconds < 60:
            return f"{seconds:.1f}s"
        elif seconds < 3600:
            minutes = int(seconds // 60)
            secs = int(seconds % 60)
            return f"{minutes}m {secs}s"
        else:
            hours = int(seconds // 3600)
            minutes = int((seconds % 3600) // 60)
            return f"{hours}h {minutes}m"

    def _print(self, update: ProgressUpdate) -> None:
        text = click.style(self._format_update(update), fg=self.COLORS.get(update.stage))
        click.echo(text, file=self.output_file, color=self.color)


__all__ = ["ProgressDisplay", "ProgressStage", "ProgressUpdate"]
