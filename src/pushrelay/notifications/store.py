"""SQLite-backed push subscription store."""

import sqlite3
import threading
import time
from dataclasses import dataclass
from pathlib import Path

from pushrelay.notifications.models import SubscriptionStats


@dataclass
class PushSubscription:
    """A single Web Push subscription."""

    id: int
    user_id: str
    endpoint: str
    p256dh: str
    auth: str
    created_at: float


_SCHEMA = """\
CREATE TABLE IF NOT EXISTS push_subscriptions (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    user_id TEXT NOT NULL,
    endpoint TEXT NOT NULL UNIQUE,
    p256dh TEXT NOT NULL,
    auth TEXT NOT NULL,
    created_at REAL NOT NULL
);
CREATE INDEX IF NOT EXISTS idx_push_subscriptions_user
    ON push_subscriptions(user_id);
"""

_COLUMNS = "id, user_id, endpoint, p256dh, auth, created_at"


def _row(r: tuple) -> PushSubscription:
    return PushSubscription(
        id=r[0],
        user_id=r[1],
        endpoint=r[2],
        p256dh=r[3],
        auth=r[4],
        created_at=r[5],
    )


class PushSubscriptionStore:
    """Push subscriptions keyed by endpoint.

    One row per browser registration. Re-registering an
    endpoint overwrites the row in place. Calls may come
    from worker threads (``asyncio.to_thread``), so the
    shared connection is guarded by a lock.
    """

    def __init__(self, db_path: str | Path) -> None:
        self._db_path = Path(db_path)
        self._conn: sqlite3.Connection | None = None
        self._lock = threading.Lock()

    def _connect(self) -> sqlite3.Connection:
        if self._conn is not None:
            return self._conn
        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        conn = sqlite3.connect(
            str(self._db_path),
            check_same_thread=False,
        )
        conn.execute("PRAGMA journal_mode=WAL")
        conn.execute("PRAGMA synchronous=NORMAL")
        conn.executescript(_SCHEMA)
        self._conn = conn
        return conn

    def subscribe(
        self,
        user_id: str,
        endpoint: str,
        p256dh: str,
        auth: str,
    ) -> PushSubscription:
        """Add or upsert a subscription (keyed on endpoint)."""
        with self._lock:
            conn = self._connect()
            conn.execute(
                "INSERT INTO push_subscriptions"
                " (user_id, endpoint, p256dh, auth, created_at)"
                " VALUES (?, ?, ?, ?, ?)"
                " ON CONFLICT(endpoint) DO UPDATE SET"
                "   user_id = excluded.user_id,"
                "   p256dh = excluded.p256dh,"
                "   auth = excluded.auth",
                (user_id, endpoint, p256dh, auth, time.time()),
            )
            conn.commit()
            row = conn.execute(
                f"SELECT {_COLUMNS} FROM push_subscriptions WHERE endpoint = ?",
                (endpoint,),
            ).fetchone()
        return _row(row)

    def unsubscribe(self, user_id: str, endpoint: str) -> bool:
        """Remove a user's subscription for an endpoint.

        Returns True if a row was removed.
        """
        with self._lock:
            conn = self._connect()
            cur = conn.execute(
                "DELETE FROM push_subscriptions WHERE user_id = ? AND endpoint = ?",
                (user_id, endpoint),
            )
            conn.commit()
        return cur.rowcount > 0

    def get_subscriptions_for_user(self, user_id: str) -> list[PushSubscription]:
        """All subscriptions owned by a user, oldest first."""
        with self._lock:
            rows = (
                self._connect()
                .execute(
                    f"SELECT {_COLUMNS} FROM push_subscriptions"
                    " WHERE user_id = ? ORDER BY id",
                    (user_id,),
                )
                .fetchall()
            )
        return [_row(r) for r in rows]

    def delete(self, subscription_id: int) -> bool:
        """Delete a subscription by id (410 cleanup).

        Deleting a row that is already gone is a no-op and
        returns False.
        """
        with self._lock:
            conn = self._connect()
            cur = conn.execute(
                "DELETE FROM push_subscriptions WHERE id = ?",
                (subscription_id,),
            )
            conn.commit()
        return cur.rowcount > 0

    def user_ids(self) -> list[str]:
        """Distinct users with at least one subscription."""
        with self._lock:
            rows = (
                self._connect()
                .execute("SELECT DISTINCT user_id FROM push_subscriptions ORDER BY user_id")
                .fetchall()
            )
        return [r[0] for r in rows]

    def stats(self) -> SubscriptionStats:
        """Subscription and distinct-user counts."""
        with self._lock:
            total, users = (
                self._connect()
                .execute("SELECT COUNT(*), COUNT(DISTINCT user_id) FROM push_subscriptions")
                .fetchone()
            )
        return SubscriptionStats(total_subscriptions=total, unique_users=users)

    def close(self) -> None:
        """Close the database connection."""
        with self._lock:
            if self._conn is not None:
                self._conn.close()
                self._conn = None
