"""Update release command."""

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional, Tuple

from ...commands.base import Command, CommandHandler, CommandResult
from ...events.base import DomainEvent
from ...release_service import ReleaseService
from ....domain.catalog.entities import ReleaseChanges, is_object_id
from ....domain.catalog.services import PublicationOutcome, sync_release_artists
from ....domain.result import CatalogError, ErrorKind, ValidationError

logger = logging.getLogger(__name__)

TITLE_IN_USE_MESSAGE = "This title is already in use. Please choose a different one."
ARTIST_SYNC_FAILED_MESSAGE = (
    "The release was saved, but its artists could not be updated. Please try again."
)


class UpdateOutcome(Enum):
    """How far an update got."""
    UPDATED = "updated"
    PARTIAL = "partial"  # release saved, artist sync failed
    FAILED = "failed"


def field_errors_for(error: CatalogError, action: str) -> Dict[str, List[str]]:
    """Turn a classified failure into messages keyed by input field.

    Not-found and conflict failures name what went wrong. Everything else
    gets a generic message, since its details are only meant for logs.
    """
    if error.kind is ErrorKind.CONFLICT and error.field == "title":
        return {"title": [TITLE_IN_USE_MESSAGE]}
    if error.kind in (ErrorKind.NOT_FOUND, ErrorKind.CONFLICT):
        return {error.field or "general": [error.user_message]}
    return {"general": [f"Failed to {action}"]}


@dataclass(frozen=True, slots=True, kw_only=True)
class UpdateReleaseCommand(Command):
    """Command to update a release and, optionally, its artists.

    ``artist_ids`` of None leaves the artist associations alone; an empty
    tuple removes them all.
    """

    release_id: str
    changes: ReleaseChanges = field(default_factory=ReleaseChanges)
    artist_ids: Optional[Tuple[str, ...]] = None


class ReleaseUpdatedEvent(DomainEvent):
    """Event raised when a release is updated."""

    def __init__(self, release_id: str, updated_fields: List[str], outcome: str):
        super().__init__(
            aggregate_id=release_id,
            aggregate_type="Release",
            event_type="ReleaseUpdated",
            event_data={
                "updated_fields": updated_fields,
                "outcome": outcome,
            }
        )


class ReleasePublishedEvent(DomainEvent):
    """Event raised the first time a release is published."""

    def __init__(self, release_id: str, published_at: str, tracks_published: int):
        super().__init__(
            aggregate_id=release_id,
            aggregate_type="Release",
            event_type="ReleasePublished",
            event_data={
                "published_at": published_at,
                "tracks_published": tracks_published,
            }
        )


class UpdateReleaseCommandHandler(CommandHandler[UpdateReleaseCommand, CommandResult]):
    """Handler for release updates.

    The release update and its track cascade run in one transaction. The
    artist sync runs afterwards, on its own, so a saved release with a
    failed artist sync is reported as a partial outcome.
    """

    def __init__(self, release_service: ReleaseService, event_bus=None):
        self.release_service = release_service
        self.event_bus = event_bus

    async def handle(self, command: UpdateReleaseCommand) -> CommandResult:
        """Handle the update release command."""
        if not is_object_id(command.release_id):
            return self._rejected(command, {"general": ["Invalid release ID"]})

        try:
            command.changes.validate()
        except ValidationError as e:
            return self._rejected(command, {e.field or "general": [str(e)]})

        updated_fields = sorted(command.changes.items())
        if command.artist_ids is not None:
            updated_fields.append("artist_ids")

        result = await self.release_service.update_release(command.release_id, command.changes)
        if result.is_failure():
            error = result.error()
            self._audit(command, updated_fields, UpdateOutcome.FAILED)
            return CommandResult(
                success=False,
                command_id=command.command_id,
                message="Failed to update release",
                errors=[str(error)],
                field_errors=field_errors_for(error, "update release"),
                result_data={
                    "outcome": UpdateOutcome.FAILED.value,
                    "error_kind": error.kind.value,
                    "release_id": command.release_id,
                },
            )

        outcome: PublicationOutcome = result.value()
        status = UpdateOutcome.UPDATED
        errors: List[str] = []
        field_errors: Dict[str, List[str]] = {}
        result_data = {
            "release_id": command.release_id,
            "cascaded": outcome.cascaded,
            "tracks_published": outcome.tracks_published,
        }

        if command.artist_ids is not None:
            sync = await sync_release_artists(
                self.release_service.repository, command.release_id, command.artist_ids
            )
            if sync.is_failure():
                status = UpdateOutcome.PARTIAL
                errors.append(str(sync.error()))
                field_errors["artist_ids"] = [ARTIST_SYNC_FAILED_MESSAGE]
                result_data["artist_sync_error_kind"] = sync.error().kind.value
            else:
                plan = sync.value()
                result_data["artists_added"] = len(plan.to_create)
                result_data["artists_removed"] = len(plan.to_delete)
            # Artist links are part of every cached read of the release.
            self.release_service.invalidate_release(command.release_id)

        result_data["outcome"] = status.value

        events: List[DomainEvent] = [
            ReleaseUpdatedEvent(command.release_id, updated_fields, status.value)
        ]
        if outcome.cascaded:
            events.append(ReleasePublishedEvent(
                command.release_id,
                outcome.release.published_at.isoformat(),
                outcome.tracks_published,
            ))

        if self.event_bus:
            await self.event_bus.publish_batch(events)

        self._audit(command, updated_fields, status)

        message = (
            f"Updated release {command.release_id}"
            if status is UpdateOutcome.UPDATED
            else f"Updated release {command.release_id}, but artist sync failed"
        )
        return CommandResult(
            success=True,
            command_id=command.command_id,
            message=message,
            errors=errors,
            field_errors=field_errors,
            events=events if self.event_bus else [],
            result_data=result_data,
        )

    def _rejected(self, command: UpdateReleaseCommand, field_errors: Dict[str, List[str]]) -> CommandResult:
        return CommandResult(
            success=False,
            command_id=command.command_id,
            message="Invalid release update",
            errors=[m for messages in field_errors.values() for m in messages],
            field_errors=field_errors,
            result_data={
                "outcome": UpdateOutcome.FAILED.value,
                "release_id": command.release_id,
            },
        )

    def _audit(self, command: UpdateReleaseCommand, updated_fields: List[str], status: UpdateOutcome) -> None:
        logger.info(
            f"media.release.updated release_id={command.release_id} "
            f"fields={','.join(updated_fields)} outcome={status.value} "
            f"correlation_id={command.correlation_id}"
        )

    def can_handle(self, command_type: type) -> bool:
        """Check if this handler can handle the given command type."""
        return command_type == UpdateReleaseCommand
