"""Pydantic models for stored rows and for the JSON bodies of the functions."""

from __future__ import annotations

from datetime import UTC, datetime

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from founderfn.config import NotificationType, TwoFactorAction, VerifyMode


def _utcnow() -> datetime:
    return datetime.now(UTC)


# === Stored rows ===


class TwoFactorCredential(BaseModel):
    user_id: str
    secret: str
    is_enabled: bool = False
    last_used_step: int | None = None
    created_at: datetime = Field(default_factory=_utcnow)
    updated_at: datetime = Field(default_factory=_utcnow)


class Challenge(BaseModel):
    id: str
    title: str
    description: str | None = None
    points: int = 0
    # JSON text in the database; decoded lazily so one bad row cannot fail a batch.
    requirements: str | dict | None = None


class ChallengeEnrollment(BaseModel):
    id: str
    user_id: str
    challenge_id: str
    progress: int = 0
    is_completed: bool = False
    joined_at: datetime | None = None
    completed_at: datetime | None = None
    challenge: Challenge


class PointsLedgerEntry(BaseModel):
    user_id: str
    amount: int
    description: str
    transaction_type: str
    reference_id: str | None = None
    reference_type: str | None = None
    created_at: datetime = Field(default_factory=_utcnow)


class Notification(BaseModel):
    user_id: str
    type: NotificationType
    title: str
    message: str
    sender_id: str | None = None
    link_to: str | None = None
    is_read: bool = False
    created_at: datetime = Field(default_factory=_utcnow)


# === Request / response bodies (camelCase on the wire) ===


class ApiModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class TwoFactorRequest(ApiModel):
    action: TwoFactorAction
    user_id: str = Field(min_length=1)
    code: str | None = None
    secret: str | None = None
    mode: VerifyMode | None = None


class CodeRequest(ApiModel):
    user_id: str = Field(min_length=1)
    code: str = Field(min_length=1)


class TwoFactorResponse(ApiModel):
    success: bool
    secret: str | None = None
    qr_code_url: str | None = None
    provisioning_uri: str | None = None
    is_enabled: bool | None = None


class ChallengeProgressRequest(ApiModel):
    user_id: str = Field(min_length=1)
    action_type: str = Field(min_length=1)
    action_value: int = 1


class UpdatedChallenge(ApiModel):
    id: str
    challenge_id: str
    progress: int
    is_completed: bool


class CompletedChallenge(ApiModel):
    id: str
    title: str


class ChallengeProgressResponse(ApiModel):
    success: bool = True
    updated: int = 0
    updated_challenges: list[UpdatedChallenge] = Field(default_factory=list)
    completed_challenges: list[CompletedChallenge] = Field(default_factory=list)
    message: str | None = None


class NotificationCreate(ApiModel):
    # Presence and type are checked by the service so callers get its messages.
    user_id: str | None = None
    type: str | None = None
    title: str | None = None
    message: str | None = None
    sender_id: str | None = None
    link_to: str | None = None


class NotificationCreated(ApiModel):
    success: bool = True
    id: str


class ErrorResponse(ApiModel):
    success: bool = False
    error: str
