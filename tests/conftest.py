"""Shared fixtures: an in-memory store with the PostgresStore interface and a settable clock."""

from __future__ import annotations

import itertools
from collections import defaultdict
from datetime import UTC, datetime

import pytest
from fastapi.testclient import TestClient

from founderfn.auth.two_factor import TwoFactorService
from founderfn.config import Settings
from founderfn.errors import StoreError
from founderfn.functions.app import create_app
from founderfn.gamification.challenges import ChallengeProgressUpdater
from founderfn.models import (
    Challenge,
    ChallengeEnrollment,
    Notification,
    PointsLedgerEntry,
    TwoFactorCredential,
)

T0 = 1_700_000_015.0  # 15s into time step 56_666_667


class FakeClock:
    def __init__(self, now: float = T0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeStore:
    def __init__(self) -> None:
        self.credentials: dict[str, TwoFactorCredential] = {}
        self.enrollments: dict[str, ChallengeEnrollment] = {}
        self.ledger: list[PointsLedgerEntry] = []
        self.stats: dict[str, dict[str, int]] = defaultdict(
            lambda: {"points": 0, "completed_challenge_count": 0}
        )
        self.notifications: list[Notification] = []
        # method name -> exception raised on every call
        self.failures: dict[str, Exception] = {}
        # enrollment id -> progress values a competing writer stores before each of our writes
        self.competing_writes: dict[str, list[int]] = {}
        self._ids = itertools.count(1)

    def _maybe_fail(self, name: str) -> None:
        if name in self.failures:
            raise self.failures[name]

    def fail(self, name: str, exc: Exception | None = None) -> None:
        self.failures[name] = exc or StoreError(f"Failed to {name}")

    def enroll(
        self,
        user_id: str,
        title: str,
        requirements: str | dict | None,
        progress: int = 0,
    ) -> ChallengeEnrollment:
        n = next(self._ids)
        enrollment = ChallengeEnrollment(
            id=f"uc-{n}",
            user_id=user_id,
            challenge_id=f"ch-{n}",
            progress=progress,
            challenge=Challenge(id=f"ch-{n}", title=title, points=50, requirements=requirements),
        )
        self.enrollments[enrollment.id] = enrollment
        return enrollment

    async def ping(self) -> bool:
        self._maybe_fail("ping")
        return True

    # --- two-factor credentials ---

    async def get_credential(self, user_id: str) -> TwoFactorCredential | None:
        self._maybe_fail("get_credential")
        cred = self.credentials.get(user_id)
        return cred.model_copy() if cred else None

    async def upsert_credential(self, user_id: str, secret: str) -> None:
        self._maybe_fail("upsert_credential")
        self.credentials[user_id] = TwoFactorCredential(user_id=user_id, secret=secret)

    async def mark_code_used(self, user_id: str, step: int, *, enable: bool) -> bool:
        self._maybe_fail("mark_code_used")
        cred = self.credentials.get(user_id)
        if cred is None or (cred.last_used_step is not None and cred.last_used_step >= step):
            return False
        cred.last_used_step = step
        cred.is_enabled = cred.is_enabled or enable
        return True

    async def delete_credential(self, user_id: str) -> None:
        self._maybe_fail("delete_credential")
        self.credentials.pop(user_id, None)

    # --- challenge enrollments ---

    async def open_enrollments(self, user_id: str) -> list[ChallengeEnrollment]:
        self._maybe_fail("open_enrollments")
        return [
            e.model_copy(deep=True)
            for e in self.enrollments.values()
            if e.user_id == user_id and not e.is_completed
        ]

    async def get_enrollment(self, enrollment_id: str) -> ChallengeEnrollment | None:
        self._maybe_fail("get_enrollment")
        e = self.enrollments.get(enrollment_id)
        return e.model_copy(deep=True) if e else None

    async def set_progress(
        self, enrollment_id: str, *, expected: int, progress: int, completed: bool
    ) -> ChallengeEnrollment | None:
        self._maybe_fail("set_progress")
        e = self.enrollments[enrollment_id]
        competing = self.competing_writes.get(enrollment_id)
        if competing:
            e.progress = competing.pop(0)
        if e.is_completed or e.progress != expected:
            return None
        e.progress = progress
        e.is_completed = completed
        if completed:
            e.completed_at = datetime.now(UTC)
        return e.model_copy(deep=True)

    # --- points and stats ---

    async def award_points(self, entry: PointsLedgerEntry) -> None:
        self._maybe_fail("award_points")
        self.ledger.append(entry)
        self.stats[entry.user_id]["points"] += entry.amount

    async def increment_completed_challenges(self, user_id: str) -> None:
        self._maybe_fail("increment_completed_challenges")
        self.stats[user_id]["completed_challenge_count"] += 1

    # --- notifications ---

    async def insert_notification(self, notification: Notification) -> str:
        self._maybe_fail("insert_notification")
        self.notifications.append(notification)
        return f"n-{len(self.notifications)}"


@pytest.fixture
def cfg() -> Settings:
    return Settings(_env_file=None, master_key="")


@pytest.fixture
def store() -> FakeStore:
    return FakeStore()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def two_factor(store, cfg, clock) -> TwoFactorService:
    return TwoFactorService(store, cfg, clock=clock)


@pytest.fixture
def updater(store, cfg) -> ChallengeProgressUpdater:
    return ChallengeProgressUpdater(store, cfg)


@pytest.fixture
def client(store, cfg, clock) -> TestClient:
    return TestClient(create_app(cfg, store=store, clock=clock))
