"""Submission catalog: where accepted songs for a group come from."""

import json
import logging
import sqlite3
import uuid
from abc import ABC, abstractmethod
from typing import List, Optional

from mixtape.exceptions import CatalogError
from mixtape.models import CanonicalSong, Platform

logger = logging.getLogger("mixtape.catalog")


class SubmissionCatalog(ABC):
    """Source of a group's accepted submissions."""

    @abstractmethod
    def get_accepted_submissions(self, group_id: str) -> List[CanonicalSong]:
        """Return the group's accepted songs in submission order."""

    @abstractmethod
    def record_resolved_platform_id(self, song_id: str, platform: Platform, track_id: str) -> None:
        """Remember a resolved native track id for a song."""

    def group_name(self, group_id: str) -> Optional[str]:
        """Display name of the group, when the catalog knows it."""
        return None


class SqliteCatalog(SubmissionCatalog):
    """Catalog stored in the same SQLite file as the sync state."""

    def __init__(self, db_path: str):
        self.db_path = db_path
        try:
            self._initialize_db()
        except sqlite3.Error as e:
            raise CatalogError(f"Failed to initialize catalog: {e}") from e

    def _connect(self) -> sqlite3.Connection:
        return sqlite3.connect(self.db_path, timeout=30)

    def _initialize_db(self) -> None:
        with self._connect() as conn:
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS groups (
                    id TEXT PRIMARY KEY,
                    name TEXT NOT NULL
                )
            """
            )
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS songs (
                    id TEXT PRIMARY KEY,
                    group_id TEXT NOT NULL,
                    title TEXT NOT NULL,
                    artist TEXT NOT NULL,
                    album TEXT,
                    duration_ms INTEGER,
                    platform_ids TEXT NOT NULL DEFAULT '{}',
                    accepted INTEGER NOT NULL DEFAULT 1,
                    submitted_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
                )
            """
            )
            conn.execute("CREATE INDEX IF NOT EXISTS idx_songs_group ON songs(group_id)")

    def set_group_name(self, group_id: str, name: str) -> None:
        try:
            with self._connect() as conn:
                conn.execute(
                    "INSERT INTO groups (id, name) VALUES (?, ?) ON CONFLICT (id) DO UPDATE SET name = excluded.name",
                    (group_id, name),
                )
        except sqlite3.Error as e:
            raise CatalogError(f"Failed to store group name: {e}") from e

    def group_name(self, group_id: str) -> Optional[str]:
        try:
            with self._connect() as conn:
                row = conn.execute("SELECT name FROM groups WHERE id = ?", (group_id,)).fetchone()
        except sqlite3.Error as e:
            raise CatalogError(f"Failed to read group name: {e}") from e
        return row[0] if row else None

    def add_submission(self, group_id: str, song: CanonicalSong, accepted: bool = True) -> CanonicalSong:
        """Store a submission and return the song with its id filled in."""
        song_id = song.id or uuid.uuid4().hex
        platform_ids = {Platform(k).value: v for k, v in song.platform_ids.items()}
        try:
            with self._connect() as conn:
                conn.execute(
                    """INSERT INTO songs (id, group_id, title, artist, album, duration_ms, platform_ids, accepted)
                       VALUES (?, ?, ?, ?, ?, ?, ?, ?)""",
                    (
                        song_id,
                        group_id,
                        song.title,
                        song.artist,
                        song.album,
                        song.duration_ms,
                        json.dumps(platform_ids),
                        int(accepted),
                    ),
                )
        except sqlite3.Error as e:
            raise CatalogError(f"Failed to store submission: {e}") from e
        logger.debug(f"Stored submission {song_id} for group {group_id}: {song}")
        return song.model_copy(update={"id": song_id})

    def get_accepted_submissions(self, group_id: str) -> List[CanonicalSong]:
        try:
            with self._connect() as conn:
                rows = conn.execute(
                    """SELECT id, title, artist, album, duration_ms, platform_ids
                       FROM songs WHERE group_id = ? AND accepted = 1
                       ORDER BY submitted_at, rowid""",
                    (group_id,),
                ).fetchall()
        except sqlite3.Error as e:
            raise CatalogError(f"Failed to load submissions for group {group_id}: {e}") from e

        return [
            CanonicalSong(
                id=song_id,
                title=title,
                artist=artist,
                album=album,
                duration_ms=duration_ms,
                platform_ids=json.loads(platform_ids) if platform_ids else {},
            )
            for song_id, title, artist, album, duration_ms, platform_ids in rows
        ]

    def record_resolved_platform_id(self, song_id: str, platform: Platform, track_id: str) -> None:
        platform = Platform(platform)
        try:
            with self._connect() as conn:
                row = conn.execute("SELECT platform_ids FROM songs WHERE id = ?", (song_id,)).fetchone()
                if not row:
                    raise CatalogError(f"Unknown song {song_id}")
                platform_ids = json.loads(row[0]) if row[0] else {}
                # Resolutions only ever get added
                if platform_ids.get(platform.value):
                    return
                platform_ids[platform.value] = track_id
                conn.execute(
                    "UPDATE songs SET platform_ids = ? WHERE id = ?",
                    (json.dumps(platform_ids), song_id),
                )
        except sqlite3.Error as e:
            raise CatalogError(f"Failed to record {platform} id for song {song_id}: {e}") from e
