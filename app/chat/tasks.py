"""
Celery tasks for chat app.

This module defines periodic tasks for:
- Presence cleanup of sockets whose process died before disconnect ran

Related files:
    - services.py: PresenceService
    - notifier.py: ChannelLayerNotifier

Usage:
    from chat.tasks import mark_stale_users_offline

    mark_stale_users_offline.delay()
"""

import logging

from celery import shared_task
from django.contrib.auth import get_user_model

from chat.constants import PRESENCE_CONFIG

logger = logging.getLogger(__name__)


@shared_task
def mark_stale_users_offline(stale_after_seconds: int | None = None) -> int:
    """
    Mark users offline whose last_seen is older than the stale threshold.

    Every swept user gets a user_status_change broadcast to the presence
    group so connected clients drop them from their online lists.

    Args:
        stale_after_seconds: Threshold override, defaults to
            PRESENCE_CONFIG.STALE_AFTER_SECONDS

    Returns:
        Number of users marked offline
    """
    from chat.notifier import get_notifier
    from chat.services import PresenceService

    if stale_after_seconds is None:
        stale_after_seconds = PRESENCE_CONFIG.STALE_AFTER_SECONDS

    user_ids = PresenceService.sweep_stale(stale_after_seconds)
    if not user_ids:
        return 0

    notifier = get_notifier()
    swept = get_user_model().objects.filter(pk__in=user_ids).values_list(
        "id", "online_status", "last_seen"
    )
    for user_id, status, last_seen in swept:
        notifier.broadcast_presence(
            {
                "user_id": user_id,
                "status": status,
                "last_seen": last_seen.isoformat() if last_seen else None,
            }
        )

    logger.info(f"Presence sweep marked {len(user_ids)} users offline")
    return len(user_ids)
