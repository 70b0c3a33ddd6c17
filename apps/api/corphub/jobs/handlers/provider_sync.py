"""Provider (Zoom) sync job handlers."""

from __future__ import annotations

import logging

from corphub.services import provider_sync_service
from corphub.services.zoom_service import ZoomClient, get_zoom_client

logger = logging.getLogger(__name__)


def _require(payload: dict, key: str):
    value = payload.get(key)
    if value is None:
        raise ValueError(f"Missing {key} in job payload")
    return value


async def process_user_sync(db, job, zoom: ZoomClient | None = None) -> None:
    """Create or link the Zoom account of a user."""
    payload = job.payload or {}
    await provider_sync_service.sync_user(
        db, _require(payload, "user_id"), zoom or get_zoom_client()
    )


async def process_meeting_sync(db, job, zoom: ZoomClient | None = None) -> None:
    """Create or update the Zoom copy of a meeting."""
    payload = job.payload or {}
    await provider_sync_service.sync_meeting(
        db, _require(payload, "meeting_id"), zoom or get_zoom_client()
    )


async def process_meeting_delete(db, job, zoom: ZoomClient | None = None) -> None:
    """Delete a Zoom meeting whose local row is already gone."""
    payload = job.payload or {}
    logger.info("Processing provider meeting delete job %s", job.id)
    await provider_sync_service.delete_meeting(
        str(_require(payload, "zoom_meeting_id")), zoom or get_zoom_client()
    )
