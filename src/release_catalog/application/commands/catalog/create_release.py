"""Create release command."""

import logging
from dataclasses import dataclass, field
from typing import Dict, List, Tuple

from ...commands.base import Command, CommandHandler, CommandResult
from ...events.base import DomainEvent
from ...release_service import ReleaseService
from ....domain.catalog.entities import ReleaseDraft
from ....domain.catalog.services import sync_release_artists
from ....domain.result import ValidationError
from .update_release import ARTIST_SYNC_FAILED_MESSAGE, UpdateOutcome, field_errors_for

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True, kw_only=True)
class CreateReleaseCommand(Command):
    """Command to add a new release to the catalog."""

    draft: ReleaseDraft
    artist_ids: Tuple[str, ...] = field(default_factory=tuple)


class ReleaseCreatedEvent(DomainEvent):
    """Event raised when a release is created."""

    def __init__(self, release_id: str, title: str, artist_ids: List[str]):
        super().__init__(
            aggregate_id=release_id,
            aggregate_type="Release",
            event_type="ReleaseCreated",
            event_data={
                "title": title,
                "artist_ids": artist_ids,
            }
        )


class CreateReleaseCommandHandler(CommandHandler[CreateReleaseCommand, CommandResult]):
    """Handler for creating releases."""

    def __init__(self, release_service: ReleaseService, event_bus=None):
        self.release_service = release_service
        self.event_bus = event_bus

    async def handle(self, command: CreateReleaseCommand) -> CommandResult:
        """Handle the create release command."""
        try:
            command.draft.validate()
        except ValidationError as e:
            return CommandResult(
                success=False,
                command_id=command.command_id,
                message="Invalid release",
                errors=[str(e)],
                field_errors={e.field or "general": [str(e)]},
                result_data={"outcome": UpdateOutcome.FAILED.value},
            )

        result = await self.release_service.create_release(command.draft)
        if result.is_failure():
            error = result.error()
            return CommandResult(
                success=False,
                command_id=command.command_id,
                message="Failed to create release",
                errors=[str(error)],
                field_errors=field_errors_for(error, "create release"),
                result_data={
                    "outcome": UpdateOutcome.FAILED.value,
                    "error_kind": error.kind.value,
                },
            )

        release = result.value()
        status = UpdateOutcome.UPDATED
        errors: List[str] = []
        field_errors: Dict[str, List[str]] = {}

        if command.artist_ids:
            sync = await sync_release_artists(
                self.release_service.repository, release.id, command.artist_ids
            )
            if sync.is_failure():
                status = UpdateOutcome.PARTIAL
                errors.append(str(sync.error()))
                field_errors["artist_ids"] = [ARTIST_SYNC_FAILED_MESSAGE]
            self.release_service.invalidate_release(release.id)

        event = ReleaseCreatedEvent(release.id, release.title, list(command.artist_ids))
        if self.event_bus:
            await self.event_bus.publish(event)

        logger.info(
            f"media.release.created release_id={release.id} outcome={status.value} "
            f"correlation_id={command.correlation_id}"
        )

        return CommandResult(
            success=True,
            command_id=command.command_id,
            message=f"Created release: {release.title}",
            errors=errors,
            field_errors=field_errors,
            events=[event] if self.event_bus else [],
            result_data={
                "outcome": status.value,
                "release_id": release.id,
            },
        )

    def can_handle(self, command_type: type) -> bool:
        """Check if this handler can handle the given command type."""
        return command_type == CreateReleaseCommand
