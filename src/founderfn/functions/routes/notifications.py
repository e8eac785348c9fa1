"""Notification endpoint."""

from __future__ import annotations

from fastapi import APIRouter, Depends

from founderfn.functions.deps import get_store
from founderfn.models import NotificationCreate, NotificationCreated
from founderfn.notifications import create_notification
from founderfn.store import PostgresStore

router = APIRouter(prefix="/functions", tags=["notifications"])


@router.post("/create-notification", response_model=NotificationCreated)
async def create(body: NotificationCreate, store: PostgresStore = Depends(get_store)):
    notification_id = await create_notification(store, body)
    return NotificationCreated(id=notification_id)
