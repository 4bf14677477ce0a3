"""Exclusive, time-boxed sync leases keyed by (group, platform)."""

import logging
import sqlite3
import threading
import uuid
from contextlib import contextmanager
from datetime import datetime, timedelta, timezone
from typing import Callable, Iterator, List, Optional

from mixtape.exceptions import SyncInProgress
from mixtape.models import Platform, SyncLease

logger = logging.getLogger("mixtape.leases")

DEFAULT_TTL = timedelta(minutes=5)
DEFAULT_SWEEP_INTERVAL = 60.0


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _to_datetime(epoch: float) -> datetime:
    return datetime.fromtimestamp(epoch, tz=timezone.utc)


class LeaseManager:
    """SQLite-backed registry of sync leases.

    ``acquire`` is a single conditional upsert on the ``(group_id, platform)``
    primary key: it only wins when no row exists or the existing row has
    expired.  Callers that lose get ``None`` back immediately.
    """

    def __init__(self, db_path: str, clock: Callable[[], datetime] = utcnow):
        self.db_path = db_path
        self._clock = clock
        self._sweeper: Optional[threading.Thread] = None
        self._stop_sweeper = threading.Event()
        logger.debug(f"Initializing lease table at: {db_path}")
        self._initialize_db()

    def _connect(self) -> sqlite3.Connection:
        return sqlite3.connect(self.db_path, timeout=30)

    def _initialize_db(self) -> None:
        with self._connect() as conn:
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS sync_leases (
                    group_id TEXT NOT NULL,
                    platform TEXT NOT NULL,
                    holder TEXT NOT NULL,
                    acquired_at REAL NOT NULL,
                    expires_at REAL NOT NULL,
                    PRIMARY KEY (group_id, platform)
                )
            """
            )
            conn.execute(
                "CREATE INDEX IF NOT EXISTS idx_sync_leases_expires ON sync_leases(expires_at)"
            )

    def acquire(
        self,
        group_id: str,
        platform: Platform,
        ttl: timedelta = DEFAULT_TTL,
        holder: Optional[str] = None,
    ) -> Optional[SyncLease]:
        """Try to take the lease for a pair.

        Returns:
            The new SyncLease, or None when a live lease is already held
        """
        platform = Platform(platform)
        now = self._clock()
        expires_at = now + ttl
        holder = holder or uuid.uuid4().hex

        with self._connect() as conn:
            conn.execute(
                """
                INSERT INTO sync_leases (group_id, platform, holder, acquired_at, expires_at)
                VALUES (?, ?, ?, ?, ?)
                ON CONFLICT (group_id, platform) DO UPDATE SET
                    holder = excluded.holder,
                    acquired_at = excluded.acquired_at,
                    expires_at = excluded.expires_at
                WHERE sync_leases.expires_at <= excluded.acquired_at
                """,
                (group_id, platform.value, holder, now.timestamp(), expires_at.timestamp()),
            )
            row = conn.execute(
                "SELECT holder FROM sync_leases WHERE group_id = ? AND platform = ?",
                (group_id, platform.value),
            ).fetchone()

        if not row or row[0] != holder:
            logger.info(f"Lease for group {group_id} on {platform} already held")
            return None

        logger.debug(f"Lease acquired for group {group_id} on {platform} by {holder}")
        return SyncLease(
            group_id=group_id,
            platform=platform,
            holder=holder,
            acquired_at=now,
            expires_at=expires_at,
        )

    def release(self, lease: Optional[SyncLease]) -> None:
        """Release a lease.  Releasing an expired or already released lease does nothing."""
        if lease is None:
            return
        with self._connect() as conn:
            cursor = conn.execute(
                "DELETE FROM sync_leases WHERE group_id = ? AND platform = ? AND holder = ?",
                (lease.group_id, lease.platform.value, lease.holder),
            )
        if cursor.rowcount:
            logger.debug(f"Lease released for group {lease.group_id} on {lease.platform}")

    def current(self, group_id: str, platform: Platform) -> Optional[SyncLease]:
        """Return the live lease for a pair, if any."""
        platform = Platform(platform)
        with self._connect() as conn:
            row = conn.execute(
                """SELECT holder, acquired_at, expires_at FROM sync_leases
                   WHERE group_id = ? AND platform = ? AND expires_at > ?""",
                (group_id, platform.value, self._clock().timestamp()),
            ).fetchone()
        if not row:
            return None
        holder, acquired_at, expires_at = row
        return SyncLease(
            group_id=group_id,
            platform=platform,
            holder=holder,
            acquired_at=_to_datetime(acquired_at),
            expires_at=_to_datetime(expires_at),
        )

    def is_held(self, group_id: str, platform: Platform) -> bool:
        return self.current(group_id, platform) is not None

    def active_leases(self) -> List[SyncLease]:
        with self._connect() as conn:
            rows = conn.execute(
                """SELECT group_id, platform, holder, acquired_at, expires_at
                   FROM sync_leases WHERE expires_at > ? ORDER BY acquired_at""",
                (self._clock().timestamp(),),
            ).fetchall()
        return [
            SyncLease(
                group_id=group_id,
                platform=Platform(platform),
                holder=holder,
                acquired_at=_to_datetime(acquired_at),
                expires_at=_to_datetime(expires_at),
            )
            for group_id, platform, holder, acquired_at, expires_at in rows
        ]

    def sweep_expired(self) -> int:
        """Delete every lease past its expiry.  Returns the number evicted."""
        with self._connect() as conn:
            cursor = conn.execute(
                "DELETE FROM sync_leases WHERE expires_at <= ?",
                (self._clock().timestamp(),),
            )
            evicted = cursor.rowcount
        if evicted:
            logger.info(f"Evicted {evicted} expired sync leases")
        return evicted

    @contextmanager
    def hold(self, group_id: str, platform: Platform, ttl: timedelta = DEFAULT_TTL) -> Iterator[SyncLease]:
        """Hold the lease for the duration of the block.

        Raises:
            SyncInProgress: another holder has a live lease
        """
        lease = self.acquire(group_id, platform, ttl=ttl)
        if lease is None:
            raise SyncInProgress(group_id, Platform(platform))
        try:
            yield lease
        finally:
            self.release(lease)

    def start_sweeper(self, interval: float = DEFAULT_SWEEP_INTERVAL) -> None:
        """Evict expired leases every ``interval`` seconds on a daemon thread."""
        if self._sweeper and self._sweeper.is_alive():
            return
        self._stop_sweeper.clear()

        def run() -> None:
            while not self._stop_sweeper.wait(interval):
                try:
                    self.sweep_expired()
                except sqlite3.Error as e:
                    logger.error(f"Lease sweep failed: {e}")

        self._sweeper = threading.Thread(target=run, name="mixtape-lease-sweeper", daemon=True)
        self._sweeper.start()
        logger.debug(f"Lease sweeper started (every {interval}s)")

    def stop_sweeper(self) -> None:
        self._stop_sweeper.set()
        if self._sweeper:
            self._sweeper.join(timeout=5)
            self._sweeper = None
