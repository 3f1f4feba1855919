"""Soft delete and restore release commands."""

import logging
from dataclasses import dataclass

from ...commands.base import Command, CommandHandler, CommandResult
from ...events.base import DomainEvent
from ...release_service import ReleaseService
from ....domain.catalog.entities import is_object_id
from .update_release import field_errors_for

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True, kw_only=True)
class SoftDeleteReleaseCommand(Command):
    """Command to hide a release without removing it."""

    release_id: str


@dataclass(frozen=True, slots=True, kw_only=True)
class RestoreReleaseCommand(Command):
    """Command to bring back a soft-deleted release."""

    release_id: str


class ReleaseArchivedEvent(DomainEvent):
    """Event raised when a release is soft deleted or restored."""

    def __init__(self, release_id: str, deleted: bool):
        super().__init__(
            aggregate_id=release_id,
            aggregate_type="Release",
            event_type="ReleaseSoftDeleted" if deleted else "ReleaseRestored",
            event_data={"deleted": deleted}
        )


class _ArchiveHandler:
    """Shared flow for the soft delete and restore handlers."""

    action = ""
    deleted = True

    def __init__(self, release_service: ReleaseService, event_bus=None):
        self.release_service = release_service
        self.event_bus = event_bus

    async def _run(self, command) -> CommandResult:
        if not is_object_id(command.release_id):
            return CommandResult(
                success=False,
                command_id=command.command_id,
                message="Invalid release ID",
                errors=["Invalid release ID"],
                field_errors={"general": ["Invalid release ID"]},
            )

        if self.deleted:
            result = await self.release_service.soft_delete_release(command.release_id)
        else:
            result = await self.release_service.restore_release(command.release_id)

        if result.is_failure():
            error = result.error()
            return CommandResult(
                success=False,
                command_id=command.command_id,
                message=f"Failed to {self.action}",
                errors=[str(error)],
                field_errors=field_errors_for(error, self.action),
                result_data={"error_kind": error.kind.value},
            )

        event = ReleaseArchivedEvent(command.release_id, self.deleted)
        if self.event_bus:
            await self.event_bus.publish(event)

        logger.info(f"media.release.{event.event_type} release_id={command.release_id}")
        return CommandResult(
            success=True,
            command_id=command.command_id,
            message=f"{self.action.capitalize()}: {command.release_id}",
            events=[event] if self.event_bus else [],
            result_data={"release_id": command.release_id},
        )


class SoftDeleteReleaseCommandHandler(_ArchiveHandler, CommandHandler[SoftDeleteReleaseCommand, CommandResult]):
    """Handler for soft deleting releases."""

    action = "soft delete release"
    deleted = True

    async def handle(self, command: SoftDeleteReleaseCommand) -> CommandResult:
        return await self._run(command)

    def can_handle(self, command_type: type) -> bool:
        return command_type == SoftDeleteReleaseCommand


class RestoreReleaseCommandHandler(_ArchiveHandler, CommandHandler[RestoreReleaseCommand, CommandResult]):
    """Handler for restoring soft deleted releases."""

    action = "restore release"
    deleted = False

    async def handle(self, command: RestoreReleaseCommand) -> CommandResult:
        return await self._run(command)

    def can_handle(self, command_type: type) -> bool:
        return command_type == RestoreReleaseCommand
