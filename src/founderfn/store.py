"""PostgreSQL-backed store used by the functions.

One `PostgresStore` is created at startup and handed to every handler.
Database errors are logged here and re-raised as `StoreError`, whose
message is safe to return to callers.
"""

from __future__ import annotations

import contextlib
import logging
from collections.abc import AsyncIterator
from typing import Any

import psycopg
import psycopg_pool

from founderfn.errors import StoreError
from founderfn.models import (
    Challenge,
    ChallengeEnrollment,
    Notification,
    PointsLedgerEntry,
    TwoFactorCredential,
)

logger = logging.getLogger(__name__)

_ENROLLMENT_COLUMNS = """
    uc.id, uc.user_id, uc.challenge_id, uc.progress, uc.is_completed,
    uc.joined_at, uc.completed_at,
    c.title, c.description, c.points, c.requirements
"""


def _enrollment(row: dict[str, Any]) -> ChallengeEnrollment:
    return ChallengeEnrollment(
        id=row["id"],
        user_id=row["user_id"],
        challenge_id=row["challenge_id"],
        progress=row["progress"] or 0,
        is_completed=bool(row["is_completed"]),
        joined_at=row["joined_at"],
        completed_at=row["completed_at"],
        challenge=Challenge(
            id=row["challenge_id"],
            title=row["title"],
            description=row["description"],
            points=row["points"] or 0,
            requirements=row["requirements"],
        ),
    )


class PostgresStore:
    def __init__(self, pool: psycopg_pool.AsyncConnectionPool) -> None:
        self._pool = pool

    @contextlib.asynccontextmanager
    async def _conn(self, what: str) -> AsyncIterator[psycopg.AsyncConnection[dict[str, Any]]]:
        """Borrow a connection; the pool commits on clean exit."""
        try:
            async with self._pool.connection() as conn:
                yield conn
        except psycopg.Error as e:
            logger.error("Database error while trying to %s: %s", what, e)
            raise StoreError(f"Failed to {what}") from e

    async def ping(self) -> bool:
        async with self._conn("check the database") as conn:
            cur = await conn.execute("SELECT 1 AS ok")
            row = await cur.fetchone()
            return bool(row and row["ok"] == 1)

    # --- two-factor credentials ---

    async def get_credential(self, user_id: str) -> TwoFactorCredential | None:
        async with self._conn("load 2FA settings") as conn:
            cur = await conn.execute(
                """SELECT user_id, secret, is_enabled, last_used_step, created_at, updated_at
                   FROM user_2fa WHERE user_id = %s""",
                (user_id,),
            )
            row = await cur.fetchone()
        return TwoFactorCredential(**row) if row else None

    async def upsert_credential(self, user_id: str, secret: str) -> None:
        async with self._conn("store 2FA secret") as conn:
            await conn.execute(
                """INSERT INTO user_2fa (user_id, secret, is_enabled, last_used_step)
                   VALUES (%s, %s, false, NULL)
                   ON CONFLICT (user_id) DO UPDATE SET
                       secret = EXCLUDED.secret,
                       is_enabled = false,
                       last_used_step = NULL,
                       updated_at = now()""",
                (user_id, secret),
            )

    async def mark_code_used(self, user_id: str, step: int, *, enable: bool) -> bool:
        """Record `step` as the last accepted one, optionally enabling 2FA.

        Returns False when an equal or newer step was already accepted.
        """
        async with self._conn("update 2FA status") as conn:
            cur = await conn.execute(
                """UPDATE user_2fa
                   SET last_used_step = %s,
                       is_enabled = is_enabled OR %s,
                       updated_at = now()
                   WHERE user_id = %s
                     AND (last_used_step IS NULL OR last_used_step < %s)
                   RETURNING user_id""",
                (step, enable, user_id, step),
            )
            return await cur.fetchone() is not None

    async def delete_credential(self, user_id: str) -> None:
        async with self._conn("disable 2FA") as conn:
            await conn.execute("DELETE FROM user_2fa WHERE user_id = %s", (user_id,))

    # --- challenge enrollments ---

    async def open_enrollments(self, user_id: str) -> list[ChallengeEnrollment]:
        async with self._conn("fetch user challenges") as conn:
            cur = await conn.execute(
                f"""SELECT {_ENROLLMENT_COLUMNS}
                    FROM user_challenges uc
                    JOIN challenges c ON c.id = uc.challenge_id
                    WHERE uc.user_id = %s AND NOT uc.is_completed
                    ORDER BY uc.joined_at""",
                (user_id,),
            )
            rows = await cur.fetchall()
        return [_enrollment(r) for r in rows]

    async def get_enrollment(self, enrollment_id: str) -> ChallengeEnrollment | None:
        async with self._conn("fetch user challenge") as conn:
            cur = await conn.execute(
                f"""SELECT {_ENROLLMENT_COLUMNS}
                    FROM user_challenges uc
                    JOIN challenges c ON c.id = uc.challenge_id
                    WHERE uc.id = %s""",
                (enrollment_id,),
            )
            row = await cur.fetchone()
        return _enrollment(row) if row else None

    async def set_progress(
        self,
        enrollment_id: str,
        *,
        expected: int,
        progress: int,
        completed: bool,
    ) -> ChallengeEnrollment | None:
        """Compare-and-set the progress of an open enrollment.

        Returns the updated enrollment, or None if it was completed or its
        progress changed since it was read.
        """
        async with self._conn("update challenge progress") as conn:
            cur = await conn.execute(
                f"""WITH updated AS (
                        UPDATE user_challenges
                        SET progress = %s,
                            is_completed = %s,
                            completed_at = CASE WHEN %s THEN now() ELSE NULL END
                        WHERE id = %s AND progress = %s AND NOT is_completed
                        RETURNING *
                    )
                    SELECT {_ENROLLMENT_COLUMNS}
                    FROM updated uc
                    JOIN challenges c ON c.id = uc.challenge_id""",
                (progress, completed, completed, enrollment_id, expected),
            )
            row = await cur.fetchone()
        return _enrollment(row) if row else None

    # --- points and stats ---

    async def award_points(self, entry: PointsLedgerEntry) -> None:
        """Append a ledger row and add its amount to the user's stats, atomically."""
        async with self._conn("award points") as conn:
            async with conn.transaction():
                await conn.execute(
                    """INSERT INTO point_transactions
                       (user_id, amount, description, transaction_type,
                        reference_id, reference_type, created_at)
                       VALUES (%s, %s, %s, %s, %s, %s, %s)""",
                    (
                        entry.user_id,
                        entry.amount,
                        entry.description,
                        entry.transaction_type,
                        entry.reference_id,
                        entry.reference_type,
                        entry.created_at,
                    ),
                )
                await conn.execute(
                    """INSERT INTO user_stats (user_id, points) VALUES (%s, %s)
                       ON CONFLICT (user_id) DO UPDATE SET
                           points = user_stats.points + EXCLUDED.points,
                           updated_at = now()""",
                    (entry.user_id, entry.amount),
                )

    async def increment_completed_challenges(self, user_id: str) -> None:
        async with self._conn("update completed challenge count") as conn:
            await conn.execute(
                """INSERT INTO user_stats (user_id, completed_challenge_count) VALUES (%s, 1)
                   ON CONFLICT (user_id) DO UPDATE SET
                       completed_challenge_count = user_stats.completed_challenge_count + 1,
                       updated_at = now()""",
                (user_id,),
            )

    # --- notifications ---

    async def insert_notification(self, notification: Notification) -> str:
        async with self._conn("create notification") as conn:
            cur = await conn.execute(
                """INSERT INTO notifications
                   (user_id, type, title, message, sender_id, link_to, is_read, created_at)
                   VALUES (%s, %s, %s, %s, %s, %s, %s, %s)
                   RETURNING id""",
                (
                    notification.user_id,
                    str(notification.type),
                    notification.title,
                    notification.message,
                    notification.sender_id,
                    notification.link_to,
                    notification.is_read,
                    notification.created_at,
                ),
            )
            row = await cur.fetchone()
        if not row:
            raise StoreError("Failed to create notification")
        return row["id"]
