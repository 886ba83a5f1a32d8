"""User interaction abstraction for the CLI and for tests.

The only interactive decision in a run is whether to delete resource groups
left behind by earlier runs; it goes through this protocol so tests can
answer without a terminal.

Example:
    >>> handler = MockInteractionHandler(confirm_responses=[False])
    >>> handler.confirm("Delete resource group 'evilian-old-rg'?", default=False)
    False
"""

from typing import Protocol, runtime_checkable

import click


@runtime_checkable
class InteractionHandler(Protocol):
    """Protocol for user interaction."""

    def confirm(self, message: str, default: bool = True) -> bool:
        """Prompt for yes/no confirmation.

        Args:
            message: Confirmation question to display
            default: Default value if user just presses Enter

        Returns:
            True if confirmed, False otherwise
        """
        ...

    def show_warning(self, message: str) -> None:
        """Display a warning message."""
        ...

    def show_info(self, message: str) -> None:
        """Display an informational message."""
        ...


class CLIInteractionHandler:
    """Click-based CLI interaction handler."""

    def confirm(self, message: str, default: bool = True) -> bool:
        """Prompt for yes/no confirmation with a yellow question.

        Raises:
            click.Abort: If user cancels (Ctrl+C)
        """
        return click.confirm(
            click.style(message, fg="yellow"),
            default=default,
        )

    def show_warning(self, message: str) -> None:
        click.secho(f"Warning: {message}", fg="yellow", err=True)

    def show_info(self, message: str) -> None:
        click.secho(message, fg="green")


class MockInteractionHandler:
    """Mock interaction handler for testing with pre-programmed responses.

    Tracks all interactions for verification in tests.

    Example:
        >>> handler = MockInteractionHandler(confirm_responses=[True, False])
        >>> handler.confirm("Continue?")
        True
        >>> len(handler.interactions)
        1
    """

    def __init__(self, confirm_responses: list[bool] | None = None):
        self.confirm_responses = confirm_responses or []
        self.interactions: list[dict] = []
        self._confirm_index = 0

    def confirm(self, message: str, default: bool = True) -> bool:
        """Return next pre-programmed confirmation response.

        Raises:
            IndexError: If no more confirm responses available
        """
        if self._confirm_index >= len(self.confirm_responses):
            raise IndexError(
                f"No more confirm responses available. "
                f"Provided {len(self.confirm_responses)}, "
                f"needed {self._confirm_index + 1}"
            )

        response = self.confirm_responses[self._confirm_index]
        self._confirm_index += 1

        self.interactions.append(
            {
                "type": "confirm",
                "message": message,
                "default": default,
                "response": response,
            }
        )

        return response

    def show_warning(self, message: str) -> None:
        self.interactions.append({"type": "warning", "message": message})

    def show_info(self, message: str) -> None:
        self.interactions.append({"type": "info", "message": message})

    def get_interactions_by_type(self, interaction_type: str) -> list[dict]:
        """Get all interactions of a specific type ("confirm", "warning", "info")."""
        return [
            interaction
            for interaction in self.interactions
            if interaction["type"] == interaction_type
        ]


__all__ = ["CLIInteractionHandler", "InteractionHandler", "MockInteractionHandler"]
