"""SQLite-backed catalog repository.

Stores releases, tracks, artists and their join records in a single SQLite
database. The connection runs in autocommit mode; ``transaction()`` issues an
explicit ``BEGIN``/``COMMIT``/``ROLLBACK`` around its block and single calls
made outside a transaction are each atomic on their own.
"""

from __future__ import annotations

import asyncio
import json
import logging
import sqlite3
from contextlib import asynccontextmanager, contextmanager
from contextvars import ContextVar
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, AsyncIterator, Dict, Iterator, List, Optional, Sequence, Tuple, Union

from ...domain.catalog.entities import (
    Artist,
    ArtistRelease,
    Release,
    ReleaseChanges,
    ReleaseTrack,
    Track,
    new_object_id,
    utcnow,
)
from ...domain.catalog.repositories import CatalogRepository
from ...domain.result import ConflictError, NotFoundError, UnavailableError
from .catalog_repository import TITLE_CONFLICT_MESSAGE

logger = logging.getLogger(__name__)

SCHEMA = """
CREATE TABLE IF NOT EXISTS releases (
    id TEXT PRIMARY KEY,
    title TEXT NOT NULL UNIQUE,
    released_on TEXT,
    catalog_number TEXT,
    description TEXT,
    labels TEXT NOT NULL DEFAULT '[]',        -- JSON array
    formats TEXT NOT NULL DEFAULT '["DIGITAL"]',  -- JSON array
    published_at TEXT,
    deleted_on TEXT,
    featured_on TEXT,
    featured_until TEXT,
    featured_description TEXT,
    created_at TEXT NOT NULL,
    updated_at TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS tracks (
    id TEXT PRIMARY KEY,
    title TEXT NOT NULL,
    published_on TEXT,
    deleted_on TEXT,
    created_at TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS release_tracks (
    id TEXT PRIMARY KEY,
    release_id TEXT NOT NULL REFERENCES releases(id) ON DELETE CASCADE,
    track_id TEXT NOT NULL REFERENCES tracks(id) ON DELETE CASCADE,
    UNIQUE (release_id, track_id)
);

CREATE TABLE IF NOT EXISTS artists (
    id TEXT PRIMARY KEY,
    first_name TEXT NOT NULL DEFAULT '',
    surname TEXT NOT NULL DEFAULT '',
    display_name TEXT
);

CREATE TABLE IF NOT EXISTS artist_releases (
    id TEXT PRIMARY KEY,
    artist_id TEXT NOT NULL REFERENCES artists(id) ON DELETE CASCADE,
    release_id TEXT NOT NULL REFERENCES releases(id) ON DELETE CASCADE,
    UNIQUE (artist_id, release_id)
);

CREATE INDEX IF NOT EXISTS idx_releases_published_at ON releases(published_at);
CREATE INDEX IF NOT EXISTS idx_release_tracks_release ON release_tracks(release_id);
CREATE INDEX IF NOT EXISTS idx_artist_releases_release ON artist_releases(release_id);
"""

_DATETIME_COLUMNS = {
    "released_on", "published_at", "deleted_on", "featured_on", "featured_until",
    "created_at", "updated_at",
}
_JSON_COLUMNS = {"labels", "formats"}

# OperationalError messages that mean the database could not be reached or
# locked in time. Anything else (missing column, SQL error) is a fault.
_UNAVAILABLE_MARKERS = ("locked", "busy", "unable to open", "disk i/o", "readonly")


def _to_db(column: str, value: Any) -> Any:
    if value is None:
        return None
    if column in _JSON_COLUMNS:
        return json.dumps(list(value))
    if isinstance(value, datetime):
        # Stored as UTC text so lexical ORDER BY matches instant order.
        if value.tzinfo is not None:
            value = value.astimezone(timezone.utc)
        return value.isoformat()
    return value


def _from_db_datetime(value: Optional[str]) -> Optional[datetime]:
    return datetime.fromisoformat(value) if value else None


@contextmanager
def _translate_errors() -> Iterator[None]:
    """Map sqlite3 failures onto the catalog error taxonomy."""
    try:
        yield
    except sqlite3.IntegrityError as e:
        message = str(e)
        if "releases.title" in message:
            raise ConflictError(
                "Release with this title already exists",
                field="title",
                user_message=TITLE_CONFLICT_MESSAGE,
            ) from e
        if "artist_releases" in message:
            raise ConflictError(
                "Artist is already linked to this release", field="artist_ids"
            ) from e
        if "UNIQUE" in message:
            raise ConflictError(message) from e
        if "FOREIGN KEY" in message:
            raise NotFoundError(message, user_message="Referenced record not found") from e
        raise
    except sqlite3.OperationalError as e:
        message = str(e).lower()
        if not any(marker in message for marker in _UNAVAILABLE_MARKERS):
            logger.error(f"Database error: {e}")
            raise
        logger.error(f"Database unavailable: {e}")
        raise UnavailableError(f"Database unavailable: {e}") from e


def _rollback(conn: sqlite3.Connection) -> None:
    if conn.in_transaction:
        conn.execute("ROLLBACK")


def _commit(conn: sqlite3.Connection) -> None:
    """COMMIT, rolling back if the commit itself fails."""
    try:
        conn.execute("COMMIT")
    except sqlite3.Error:
        _rollback(conn)
        raise


class SQLiteCatalogRepository(CatalogRepository):
    """Catalog repository persisted in SQLite.

    ``timeout`` is how long, in seconds, a statement waits on a lock held by
    another connection before failing as unavailable.
    """

    def __init__(self, db_path: Union[str, Path], timeout: float = 5.0):
        self.db_path = db_path
        self.timeout = timeout
        self._conn: Optional[sqlite3.Connection] = None
        self._lock = asyncio.Lock()
        self._in_transaction: ContextVar[bool] = ContextVar(
            f"sqlite_catalog_tx_{id(self)}", default=False
        )

    # Connection management

    def _connection(self) -> sqlite3.Connection:
        if self._conn is None:
            try:
                if self.db_path != ":memory:":
                    Path(self.db_path).parent.mkdir(parents=True, exist_ok=True)
                conn = sqlite3.connect(self.db_path, timeout=self.timeout, isolation_level=None)
                conn.row_factory = sqlite3.Row
                conn.execute("PRAGMA foreign_keys = ON")
                conn.executescript(SCHEMA)
            except (sqlite3.Error, OSError) as e:
                logger.error(f"Database connection failed: {e}")
                raise UnavailableError(f"Database connection failed: {e}") from e
            self._conn = conn
        return self._conn

    def close(self) -> None:
        if self._conn is not None:
            self._conn.close()
            self._conn = None

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[None]:
        async with self._lock:
            conn = self._connection()
            with _translate_errors():
                conn.execute("BEGIN")
            token = self._in_transaction.set(True)
            try:
                yield
            except BaseException:
                _rollback(conn)
                raise
            else:
                with _translate_errors():
                    _commit(conn)
            finally:
                self._in_transaction.reset(token)

    @asynccontextmanager
    async def _guard(self) -> AsyncIterator[sqlite3.Connection]:
        """Run one repository call, atomically when outside a transaction."""
        if self._in_transaction.get():
            with _translate_errors():
                yield self._connection()
            return

        async with self._lock:
            conn = self._connection()
            with _translate_errors():
                conn.execute("BEGIN")
                try:
                    yield conn
                except BaseException:
                    _rollback(conn)
                    raise
                _commit(conn)

    # Row mapping

    def _release_from_row(self, conn: sqlite3.Connection, row: sqlite3.Row) -> Release:
        release_id = row["id"]
        track_links = conn.execute(
            "SELECT id, release_id, track_id FROM release_tracks WHERE release_id = ? ORDER BY rowid",
            (release_id,),
        ).fetchall()
        artist_links = conn.execute(
            "SELECT id, artist_id, release_id FROM artist_releases WHERE release_id = ? ORDER BY rowid",
            (release_id,),
        ).fetchall()
        return Release(
            id=release_id,
            title=row["title"],
            released_on=_from_db_datetime(row["released_on"]),
            catalog_number=row["catalog_number"],
            description=row["description"],
            labels=json.loads(row["labels"] or "[]"),
            formats=json.loads(row["formats"] or "[]"),
            published_at=_from_db_datetime(row["published_at"]),
            deleted_on=_from_db_datetime(row["deleted_on"]),
            featured_on=_from_db_datetime(row["featured_on"]),
            featured_until=_from_db_datetime(row["featured_until"]),
            featured_description=row["featured_description"],
            created_at=_from_db_datetime(row["created_at"]),
            updated_at=_from_db_datetime(row["updated_at"]),
            release_tracks=[
                ReleaseTrack(id=r["id"], release_id=r["release_id"], track_id=r["track_id"])
                for r in track_links
            ],
            artist_releases=[
                ArtistRelease(id=r["id"], artist_id=r["artist_id"], release_id=r["release_id"])
                for r in artist_links
            ],
        )

    @staticmethod
    def _track_from_row(row: sqlite3.Row) -> Track:
        return Track(
            id=row["id"],
            title=row["title"],
            published_on=_from_db_datetime(row["published_on"]),
            deleted_on=_from_db_datetime(row["deleted_on"]),
            created_at=_from_db_datetime(row["created_at"]),
        )

    def _fetch_release(self, conn: sqlite3.Connection, release_id: str) -> Optional[Release]:
        row = conn.execute("SELECT * FROM releases WHERE id = ?", (release_id,)).fetchone()
        return self._release_from_row(conn, row) if row else None

    # Releases

    async def find_release(self, release_id: str) -> Optional[Release]:
        async with self._guard() as conn:
            return self._fetch_release(conn, release_id)

    async def list_releases(
        self,
        *,
        skip: int = 0,
        take: int = 50,
        search: Optional[str] = None,
        published_only: bool = False,
    ) -> List[Release]:
        clauses: List[str] = []
        params: List[Any] = []
        if search:
            pattern = f"%{search.lower()}%"
            clauses.append(
                "(LOWER(title) LIKE ? OR LOWER(COALESCE(catalog_number, '')) LIKE ? "
                "OR LOWER(COALESCE(description, '')) LIKE ?)"
            )
            params.extend([pattern, pattern, pattern])
        if published_only:
            clauses.append("published_at IS NOT NULL AND deleted_on IS NULL")
            order = "published_at DESC"
        else:
            order = "created_at DESC"

        where = f"WHERE {' AND '.join(clauses)}" if clauses else ""
        sql = f"SELECT * FROM releases {where} ORDER BY {order} LIMIT ? OFFSET ?"
        params.extend([take, skip])

        async with self._guard() as conn:
            rows = conn.execute(sql, params).fetchall()
            return [self._release_from_row(conn, row) for row in rows]

    async def create_release(self, release: Release) -> Release:
        columns = [
            "id", "title", "released_on", "catalog_number", "description", "labels",
            "formats", "published_at", "deleted_on", "featured_on", "featured_until",
            "featured_description", "created_at", "updated_at",
        ]
        values = [_to_db(column, getattr(release, column)) for column in columns]
        placeholders = ", ".join("?" for _ in columns)

        async with self._guard() as conn:
            conn.execute(
                f"INSERT INTO releases ({', '.join(columns)}) VALUES ({placeholders})",
                values,
            )
            return self._fetch_release(conn, release.id)

    async def update_release(self, release_id: str, changes: ReleaseChanges) -> Release:
        values: Dict[str, Any] = {
            column: _to_db(column, value) for column, value in changes.items().items()
        }
        values["updated_at"] = _to_db("updated_at", utcnow())
        assignments = ", ".join(f"{column} = ?" for column in values)

        async with self._guard() as conn:
            cursor = conn.execute(
                f"UPDATE releases SET {assignments} WHERE id = ?",
                [*values.values(), release_id],
            )
            if cursor.rowcount == 0:
                raise NotFoundError(
                    f"Release {release_id} not found", user_message="Release not found"
                )
            return self._fetch_release(conn, release_id)

    async def delete_release(self, release_id: str) -> Release:
        async with self._guard() as conn:
            release = self._fetch_release(conn, release_id)
            if release is None:
                raise NotFoundError(
                    f"Release {release_id} not found", user_message="Release not found"
                )
            conn.execute("DELETE FROM releases WHERE id = ?", (release_id,))
            return release

    # Tracks

    async def save_track(self, track: Track) -> Track:
        async with self._guard() as conn:
            conn.execute(
                "INSERT OR REPLACE INTO tracks (id, title, published_on, deleted_on, created_at) "
                "VALUES (?, ?, ?, ?, ?)",
                (
                    track.id,
                    track.title,
                    _to_db("published_on", track.published_on),
                    _to_db("deleted_on", track.deleted_on),
                    _to_db("created_at", track.created_at),
                ),
            )
            return track

    async def find_track(self, track_id: str) -> Optional[Track]:
        async with self._guard() as conn:
            row = conn.execute("SELECT * FROM tracks WHERE id = ?", (track_id,)).fetchone()
            return self._track_from_row(row) if row else None

    async def link_track(self, release_id: str, track_id: str) -> ReleaseTrack:
        link = ReleaseTrack(id=new_object_id(), release_id=release_id, track_id=track_id)
        async with self._guard() as conn:
            conn.execute(
                "INSERT INTO release_tracks (id, release_id, track_id) VALUES (?, ?, ?)",
                (link.id, link.release_id, link.track_id),
            )
            return link

    async def publish_tracks(self, track_ids: Sequence[str], published_on: datetime) -> int:
        track_ids = list(dict.fromkeys(track_ids))
        if not track_ids:
            return 0
        placeholders = ", ".join("?" for _ in track_ids)
        async with self._guard() as conn:
            cursor = conn.execute(
                f"UPDATE tracks SET published_on = ? "
                f"WHERE published_on IS NULL AND id IN ({placeholders})",
                [_to_db("published_on", published_on), *track_ids],
            )
            return cursor.rowcount

    # Artists

    async def save_artist(self, artist: Artist) -> Artist:
        async with self._guard() as conn:
            conn.execute(
                "INSERT OR REPLACE INTO artists (id, first_name, surname, display_name) "
                "VALUES (?, ?, ?, ?)",
                (artist.id, artist.first_name, artist.surname, artist.display_name),
            )
            return artist

    async def find_associations(self, release_id: str) -> List[ArtistRelease]:
        async with self._guard() as conn:
            rows = conn.execute(
                "SELECT id, artist_id, release_id FROM artist_releases "
                "WHERE release_id = ? ORDER BY rowid",
                (release_id,),
            ).fetchall()
            return [
                ArtistRelease(id=r["id"], artist_id=r["artist_id"], release_id=r["release_id"])
                for r in rows
            ]

    async def create_associations(self, pairs: Sequence[Tuple[str, str]]) -> int:
        if not pairs:
            return 0
        async with self._guard() as conn:
            conn.executemany(
                "INSERT INTO artist_releases (id, artist_id, release_id) VALUES (?, ?, ?)",
                [(new_object_id(), artist_id, release_id) for artist_id, release_id in pairs],
            )
            return len(pairs)

    async def delete_associations(self, join_ids: Sequence[str]) -> int:
        if not join_ids:
            return 0
        placeholders = ", ".join("?" for _ in join_ids)
        async with self._guard() as conn:
            cursor = conn.execute(
                f"DELETE FROM artist_releases WHERE id IN ({placeholders})",
                list(join_ids),
            )
            return cursor.rowcount
