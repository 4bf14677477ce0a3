"""Persistence for group playlists."""

import json
import logging
import sqlite3
from datetime import datetime
from typing import List, Optional

from mixtape.models import GroupPlaylist, Platform

logger = logging.getLogger("mixtape.store")


class PlaylistStore:
    """SQLite-backed table of group playlists.

    At most one active row exists per (group, platform); soft-deleted rows
    are kept for history.
    """

    def __init__(self, db_path: str):
        self.db_path = db_path
        logger.debug(f"Initializing playlist store at: {db_path}")
        self._initialize_db()

    def _connect(self) -> sqlite3.Connection:
        return sqlite3.connect(self.db_path, timeout=30)

    def _initialize_db(self) -> None:
        with self._connect() as conn:
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS group_playlists (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    group_id TEXT NOT NULL,
                    platform TEXT NOT NULL,
                    native_playlist_id TEXT NOT NULL,
                    name TEXT NOT NULL,
                    track_ids TEXT NOT NULL DEFAULT '[]',
                    last_synced_at TIMESTAMP,
                    is_active INTEGER NOT NULL DEFAULT 1,
                    created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
                )
            """
            )
            conn.execute(
                """
                CREATE UNIQUE INDEX IF NOT EXISTS idx_group_playlists_active
                ON group_playlists(group_id, platform) WHERE is_active = 1
            """
            )

    @staticmethod
    def _from_row(row) -> GroupPlaylist:
        group_id, platform, native_id, name, track_ids, last_synced_at, is_active = row
        return GroupPlaylist(
            group_id=group_id,
            platform=Platform(platform),
            native_playlist_id=native_id,
            name=name,
            track_ids=json.loads(track_ids) if track_ids else [],
            last_synced_at=datetime.fromisoformat(last_synced_at) if last_synced_at else None,
            is_active=bool(is_active),
        )

    def get_active(self, group_id: str, platform: Platform) -> Optional[GroupPlaylist]:
        with self._connect() as conn:
            row = conn.execute(
                """SELECT group_id, platform, native_playlist_id, name, track_ids, last_synced_at, is_active
                   FROM group_playlists WHERE group_id = ? AND platform = ? AND is_active = 1""",
                (group_id, Platform(platform).value),
            ).fetchone()
        return self._from_row(row) if row else None

    def list_for_group(self, group_id: str, include_inactive: bool = False) -> List[GroupPlaylist]:
        query = """SELECT group_id, platform, native_playlist_id, name, track_ids, last_synced_at, is_active
                   FROM group_playlists WHERE group_id = ?"""
        if not include_inactive:
            query += " AND is_active = 1"
        query += " ORDER BY id"
        with self._connect() as conn:
            rows = conn.execute(query, (group_id,)).fetchall()
        return [self._from_row(row) for row in rows]

    def save(self, playlist: GroupPlaylist) -> GroupPlaylist:
        """Insert or update the active row for the playlist's pair."""
        values = (
            playlist.native_playlist_id,
            playlist.name,
            json.dumps(list(playlist.track_ids)),
            playlist.last_synced_at.isoformat() if playlist.last_synced_at else None,
        )
        with self._connect() as conn:
            cursor = conn.execute(
                """UPDATE group_playlists
                   SET native_playlist_id = ?, name = ?, track_ids = ?, last_synced_at = ?
                   WHERE group_id = ? AND platform = ? AND is_active = 1""",
                values + (playlist.group_id, playlist.platform.value),
            )
            if cursor.rowcount == 0:
                conn.execute(
                    """INSERT INTO group_playlists
                       (native_playlist_id, name, track_ids, last_synced_at, group_id, platform, is_active)
                       VALUES (?, ?, ?, ?, ?, ?, 1)""",
                    values + (playlist.group_id, playlist.platform.value),
                )
                logger.debug(f"Stored new {playlist.platform} playlist for group {playlist.group_id}")
        return playlist.model_copy(update={"is_active": True})

    def deactivate(self, group_id: str, platform: Optional[Platform] = None) -> int:
        """Soft-delete the active playlist(s) of a group.  Returns rows changed."""
        query = "UPDATE group_playlists SET is_active = 0 WHERE group_id = ? AND is_active = 1"
        params = [group_id]
        if platform is not None:
            query += " AND platform = ?"
            params.append(Platform(platform).value)
        with self._connect() as conn:
            cursor = conn.execute(query, params)
            changed = cursor.rowcount
        if changed:
            logger.info(f"Deactivated {changed} playlist(s) for group {group_id}")
        return changed
