"""Command side of CQRS pattern."""

from .base import Command, CommandHandler, CommandBus, CommandResult

__all__ = ["Command", "CommandHandler", "CommandBus", "CommandResult"]
