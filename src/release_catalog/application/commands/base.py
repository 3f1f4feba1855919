"""Write side of the application layer.

A command is an immutable request to change the catalog. Each command type
has exactly one handler; the bus refuses a handler that does not accept the
type it is registered under, times every dispatch, and turns an exception
escaping a handler into a failed ``CommandResult``.
"""

import logging
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from typing import Any, Dict, Generic, List, Optional, TypeVar
from uuid import uuid4

from ..events import DomainEvent

logger = logging.getLogger(__name__)

C = TypeVar("C", bound="Command")
R = TypeVar("R", bound="CommandResult")


@dataclass(frozen=True, slots=True)
class Command:
    """Base command.

    ``correlation_id`` is carried into the handler's audit line so a write
    can be traced back to the request that caused it.
    """

    command_id: str = field(default_factory=lambda: str(uuid4()))
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    correlation_id: Optional[str] = None


class CommandHandler(ABC, Generic[C, R]):
    @abstractmethod
    async def handle(self, command: C) -> R:
        pass

    @abstractmethod
    def can_handle(self, command_type: type) -> bool:
        pass


@dataclass(frozen=True, slots=True)
class CommandResult:
    """Outcome of a command.

    ``field_errors`` maps an input field name (or ``"general"``) to messages
    that can be shown next to that field.
    """

    success: bool
    command_id: str
    message: Optional[str] = None
    errors: List[str] = field(default_factory=list)
    field_errors: Dict[str, List[str]] = field(default_factory=dict)
    events: List[DomainEvent] = field(default_factory=list)
    result_data: Dict[str, Any] = field(default_factory=dict)
    execution_time_ms: Optional[float] = None


class CommandBus:
    """Routes each command to the handler registered for its type."""

    def __init__(self):
        self._handlers: Dict[type, CommandHandler] = {}

    def register(self, command_type: type, handler: CommandHandler) -> None:
        if not handler.can_handle(command_type):
            raise ValueError(
                f"{type(handler).__name__} cannot handle {command_type.__name__}"
            )
        self._handlers[command_type] = handler

    async def dispatch(self, command: Command) -> CommandResult:
        command_name = type(command).__name__
        handler = self._handlers.get(type(command))
        if handler is None:
            return CommandResult(
                success=False,
                command_id=command.command_id,
                errors=[f"No handler registered for command type: {command_name}"],
            )

        started = time.perf_counter()
        try:
            result = await handler.handle(command)
        except Exception as e:
            logger.exception(f"{command_name} handler raised")
            result = CommandResult(
                success=False,
                command_id=command.command_id,
                errors=[str(e)],
            )
        return replace(result, execution_time_ms=(time.perf_counter() - started) * 1000)
