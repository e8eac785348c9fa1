"""In-app notifications."""

from __future__ import annotations

import logging

from founderfn.config import NotificationType
from founderfn.errors import ValidationError
from founderfn.models import Notification, NotificationCreate
from founderfn.store import PostgresStore

logger = logging.getLogger(__name__)


def build_notification(body: NotificationCreate) -> Notification:
    if not (body.user_id and body.type and body.title and body.message):
        raise ValidationError("Missing required fields: userId, type, title, message")
    valid = [t.value for t in NotificationType]
    if body.type not in valid:
        raise ValidationError(
            f"Invalid notification type: {body.type}. Valid types are: {', '.join(valid)}"
        )
    return Notification(
        user_id=body.user_id,
        type=NotificationType(body.type),
        title=body.title,
        message=body.message,
        sender_id=body.sender_id or None,
        link_to=body.link_to or None,
    )


async def create_notification(store: PostgresStore, body: NotificationCreate) -> str:
    """Validate and store a notification, returning its id."""
    notification_id = await store.insert_notification(build_notification(body))
    logger.info("Notification created successfully: %s", notification_id)
    return notification_id
