"""Challenge progress tracking and completion rewards.

A challenge's requirements map action types to a required count, stored
as JSON text, e.g. ``{"post": 5, "comment": 10}``. Enrollments store
progress as a whole percentage, so the raw count is recovered from the
percentage before each action is added.
"""

from __future__ import annotations

import json
import logging
import math
from dataclasses import dataclass, field
from typing import Any

from founderfn.config import NotificationType, Settings
from founderfn.errors import StoreError
from founderfn.models import Challenge, ChallengeEnrollment, Notification, PointsLedgerEntry
from founderfn.store import PostgresStore

logger = logging.getLogger(__name__)

TRANSACTION_TYPE = "challenge_completed"
REFERENCE_TYPE = "challenge"
REWARDS_LINK = "/rewards?tab=challenges"

# A whole percentage only recovers the exact raw count while the count fits in 100 steps.
MAX_REQUIRED = 100


class MalformedRequirements(ValueError):
    pass


@dataclass
class ProgressResult:
    updated: list[ChallengeEnrollment] = field(default_factory=list)
    completed: list[Challenge] = field(default_factory=list)
    open_enrollments: int = 0


def parse_requirements(raw: str | dict[str, Any] | None) -> dict[str, int]:
    """Decode a requirements value into {lowercased action type: required count}."""
    if raw is None or (isinstance(raw, str) and not raw.strip()):
        return {}
    try:
        data = json.loads(raw) if isinstance(raw, str) else raw
    except json.JSONDecodeError as e:
        raise MalformedRequirements(f"invalid JSON: {e}") from e
    if not isinstance(data, dict):
        raise MalformedRequirements(f"expected an object, got {type(data).__name__}")

    parsed: dict[str, int] = {}
    for action, required in data.items():
        # bool is an int subclass; "true" is not a count
        if isinstance(required, bool) or not isinstance(required, int) or required <= 0:
            raise MalformedRequirements(f"requirement for {action!r} must be a positive integer")
        if required > MAX_REQUIRED:
            raise MalformedRequirements(f"requirement for {action!r} exceeds {MAX_REQUIRED}")
        parsed[str(action).strip().lower()] = required
    return parsed


def _round_half_up(x: float) -> int:
    return math.floor(x + 0.5)


def advance_progress(progress: int, required: int, delta: int) -> int:
    """New percentage after adding `delta` actions to an enrollment at `progress`."""
    progress = max(0, min(100, progress))
    current = _round_half_up(progress * required / 100)
    current = max(0, min(required, current + delta))
    return _round_half_up(current / required * 100)


class ChallengeProgressUpdater:
    def __init__(self, store: PostgresStore, cfg: Settings) -> None:
        self._store = store
        self._cfg = cfg

    async def record_action(self, user_id: str, action_type: str, action_value: int = 1) -> ProgressResult:
        """Apply one user action to every open enrollment that counts it.

        Enrollments with unreadable requirements, or whose write fails, are
        logged and skipped; the rest of the batch still runs.
        """
        result = ProgressResult()
        key = action_type.strip().lower()
        enrollments = await self._store.open_enrollments(user_id)
        result.open_enrollments = len(enrollments)

        for enrollment in enrollments:
            try:
                requirements = parse_requirements(enrollment.challenge.requirements)
            except MalformedRequirements as e:
                logger.warning(
                    "Skipping enrollment %s: challenge %s has malformed requirements (%s)",
                    enrollment.id, enrollment.challenge_id, e,
                )
                continue

            required = requirements.get(key)
            if required is None:
                continue

            try:
                saved = await self._advance(enrollment, required, action_value)
            except StoreError:
                logger.error("Error updating challenge enrollment %s", enrollment.id)
                continue
            if saved is None:
                continue

            result.updated.append(saved)
            if saved.is_completed:
                result.completed.append(saved.challenge)
                await self._reward(user_id, saved)

        logger.info(
            "Action %s x%d for user %s: %d enrollment(s) updated, %d completed",
            key, action_value, user_id, len(result.updated), len(result.completed),
        )
        return result

    async def _advance(
        self, enrollment: ChallengeEnrollment, required: int, delta: int
    ) -> ChallengeEnrollment | None:
        """Write the new progress, re-reading and retrying if another writer won."""
        current = enrollment
        for _ in range(self._cfg.progress_write_attempts):
            progress = advance_progress(current.progress, required, delta)
            saved = await self._store.set_progress(
                current.id,
                expected=current.progress,
                progress=progress,
                completed=progress >= 100,
            )
            if saved is not None:
                return saved

            fresh = await self._store.get_enrollment(current.id)
            if fresh is None or fresh.is_completed:
                return None
            current = fresh

        logger.warning(
            "Gave up updating enrollment %s after %d conflicting writes",
            enrollment.id, self._cfg.progress_write_attempts,
        )
        return None

    async def _reward(self, user_id: str, enrollment: ChallengeEnrollment) -> None:
        """Completion side effects. Failures are logged, the completion stands."""
        points = self._cfg.challenge_completion_points
        title = enrollment.challenge.title

        if points > 0:
            try:
                await self._store.award_points(
                    PointsLedgerEntry(
                        user_id=user_id,
                        amount=points,
                        description=f"Completed challenge: {title}",
                        transaction_type=TRANSACTION_TYPE,
                        reference_id=enrollment.id,
                        reference_type=REFERENCE_TYPE,
                    )
                )
            except StoreError:
                logger.error("Error awarding points for challenge enrollment %s", enrollment.id)

        try:
            await self._store.increment_completed_challenges(user_id)
        except StoreError:
            logger.error("Error incrementing completed challenge count for user %s", user_id)

        try:
            await self._store.insert_notification(
                Notification(
                    user_id=user_id,
                    type=NotificationType.BADGE,
                    title="Challenge Completed!",
                    message=f'You\'ve completed the "{title}" challenge and earned {points} points!',
                    link_to=REWARDS_LINK,
                )
            )
        except StoreError:
            logger.error("Error creating completion notification for user %s", user_id)
