"""Catalog commands."""

from .create_release import CreateReleaseCommand, CreateReleaseCommandHandler, ReleaseCreatedEvent
from .update_release import (
    UpdateOutcome,
    UpdateReleaseCommand,
    UpdateReleaseCommandHandler,
    ReleasePublishedEvent,
    ReleaseUpdatedEvent,
)
from .archive_release import (
    SoftDeleteReleaseCommand,
    SoftDeleteReleaseCommandHandler,
    RestoreReleaseCommand,
    RestoreReleaseCommandHandler,
    ReleaseArchivedEvent,
)

__all__ = [
    "CreateReleaseCommand",
    "CreateReleaseCommandHandler",
    "ReleaseCreatedEvent",
    "UpdateOutcome",
    "UpdateReleaseCommand",
    "UpdateReleaseCommandHandler",
    "ReleasePublishedEvent",
    "ReleaseUpdatedEvent",
    "SoftDeleteReleaseCommand",
    "SoftDeleteReleaseCommandHandler",
    "RestoreReleaseCommand",
    "RestoreReleaseCommandHandler",
    "ReleaseArchivedEvent",
]
