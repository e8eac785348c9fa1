"""FastAPI dependencies handing the startup-built services to handlers."""

from __future__ import annotations

from fastapi import Request

from founderfn.auth.two_factor import TwoFactorService
from founderfn.gamification.challenges import ChallengeProgressUpdater
from founderfn.store import PostgresStore


def get_store(request: Request) -> PostgresStore:
    return request.app.state.store


def get_two_factor(request: Request) -> TwoFactorService:
    return request.app.state.two_factor


def get_progress_updater(request: Request) -> ChallengeProgressUpdater:
    return request.app.state.progress_updater
