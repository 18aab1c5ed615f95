"""In-process host used by the CLI and the public client."""

from __future__ import annotations

import logging
from collections.abc import Callable
from typing import Any

from kommanderctl.core.model import ConnectionStatus, VariableDefinition

LOGGER = logging.getLogger("kommanderctl.device")

_LEVELS = {
    "debug": logging.DEBUG,
    "info": logging.INFO,
    "warn": logging.WARNING,
    "warning": logging.WARNING,
    "error": logging.ERROR,
}

VariableListener = Callable[[dict[str, Any]], None]
StatusListener = Callable[[ConnectionStatus, str | None], None]


class ConsoleHost:
    """Keeps exported variables in memory and forwards logs to :mod:`logging`."""

    def __init__(
        self,
        *,
        on_variables: VariableListener | None = None,
        on_status: StatusListener | None = None,
    ) -> None:
        self.on_variables = on_variables
        self.on_status = on_status
        self.status = ConnectionStatus.DISCONNECTED
        self.status_message: str | None = None
        self.status_history: list[ConnectionStatus] = []
        self.definitions: dict[str, VariableDefinition] = {}
        self.variables: dict[str, Any] = {}
        self.checked_feedbacks: list[str] = []

    def log(self, level: str, message: str) -> None:
        LOGGER.log(_LEVELS.get(level, logging.INFO), message)

    def update_status(self, status: ConnectionStatus, message: str | None = None) -> None:
        self.status = status
        self.status_message = message
        self.status_history.append(status)
        if self.on_status is not None:
            self.on_status(status, message)

    def set_variable_definitions(self, definitions: list[VariableDefinition]) -> None:
        self.definitions = {d.variable_id: d for d in definitions}

    def set_variable_values(self, values: dict[str, Any]) -> None:
        self.variables.update(values)
        if self.on_variables is not None:
            self.on_variables(dict(values))

    def check_feedbacks(self, *feedback_ids: str) -> None:
        self.checked_feedbacks.extend(feedback_ids)
