"""Host framework interfaces consumed by the driver."""

from __future__ import annotations

from typing import Any, Protocol

from kommanderctl.core.model import ConnectionStatus, VariableDefinition


class Host(Protocol):
    def log(self, level: str, message: str) -> None:
        """Emit an operator-visible log line (``debug``, ``info``, ``warn`` or ``error``)."""

    def update_status(self, status: ConnectionStatus, message: str | None = None) -> None:
        """Publish the connection status shown to the operator."""

    def set_variable_definitions(self, definitions: list[VariableDefinition]) -> None:
        """Replace the set of exported variables."""

    def set_variable_values(self, values: dict[str, Any]) -> None:
        """Update exported variable values."""

    def check_feedbacks(self, *feedback_ids: str) -> None:
        """Ask the framework to re-evaluate the named feedback predicates."""
