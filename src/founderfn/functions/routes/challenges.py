"""Challenge progress endpoint."""

from __future__ import annotations

from fastapi import APIRouter, Depends

from founderfn.functions.deps import get_progress_updater
from founderfn.gamification.challenges import ChallengeProgressUpdater
from founderfn.models import (
    ChallengeProgressRequest,
    ChallengeProgressResponse,
    CompletedChallenge,
    UpdatedChallenge,
)

router = APIRouter(prefix="/functions", tags=["challenges"])


@router.post(
    "/update-challenge-progress",
    response_model=ChallengeProgressResponse,
    response_model_exclude_none=True,
)
async def update_challenge_progress(
    body: ChallengeProgressRequest,
    updater: ChallengeProgressUpdater = Depends(get_progress_updater),
):
    result = await updater.record_action(body.user_id, body.action_type, body.action_value)
    return ChallengeProgressResponse(
        updated=len(result.updated),
        updated_challenges=[
            UpdatedChallenge(
                id=e.id,
                challenge_id=e.challenge_id,
                progress=e.progress,
                is_completed=e.is_completed,
            )
            for e in result.updated
        ],
        completed_challenges=[CompletedChallenge(id=c.id, title=c.title) for c in result.completed],
        message=None if result.open_enrollments else "No active challenges found for user",
    )
