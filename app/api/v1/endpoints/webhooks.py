"""Database change webhook (Supabase Database Webhooks).

Each insert/update/delete on a tracked table is POSTed here. The payload is
fanned out on the owner's Redis channel so every instance patches its cached
snapshot; without Redis it is applied in-process.
"""

import hashlib
import hmac
import json
import logging
from typing import Annotated, Any

from fastapi import APIRouter, Depends, HTTPException, Request

from app.api.v1.dependencies import get_change_publisher, get_stats_service
from app.application.use_cases.analytics import DashboardStatsService
from app.core.config import get_settings
from app.core.limiter import limit_webhook
from app.infrastructure.messaging.redis_pubsub import ChangeEventPublisher
from app.schemas.dashboard import WebhookAcceptedResponse

logger = logging.getLogger(__name__)

router = APIRouter()


def _verify_webhook_signature(body: bytes, signature_header: str | None, secret: str) -> bool:
    """Return True if X-Webhook-Signature-256 matches HMAC-SHA256(secret, body)."""
    if not signature_header or not signature_header.startswith("sha256="):
        return False
    expected = hmac.HMAC(secret.encode(), body, hashlib.sha256).hexdigest()
    return hmac.compare_digest(signature_header[7:].strip(), expected)


def _owner_id(payload: dict[str, Any]) -> str | None:
    """user_id of the changed row (new row for insert/update, old row for delete)."""
    for key in ("record", "new", "old_record", "old"):
        row = payload.get(key)
        if isinstance(row, dict) and row.get("user_id"):
            return str(row["user_id"])
    return None


@router.post("/db-changes", response_model=WebhookAcceptedResponse, status_code=202)
@limit_webhook
async def db_changes_webhook(
    request: Request,
    service: Annotated[DashboardStatsService, Depends(get_stats_service)],
    publisher: Annotated[ChangeEventPublisher | None, Depends(get_change_publisher)],
):
    """Accept one change payload.

    DB_WEBHOOK_SECRET must be set, and callers must send
    X-Webhook-Signature-256: sha256=<hmac_sha256(secret, body)>.
    """
    body = await request.body()
    settings = get_settings()
    if not settings.db_webhook_secret:
        raise HTTPException(
            status_code=503,
            detail="Change webhook is not configured (DB_WEBHOOK_SECRET is not set).",
        )
    sig = request.headers.get("X-Webhook-Signature-256")
    secret = settings.db_webhook_secret.get_secret_value()
    if not _verify_webhook_signature(body, sig, secret):
        raise HTTPException(status_code=401, detail="Invalid or missing webhook signature")
    try:
        payload = json.loads(body)
    except ValueError as e:
        raise HTTPException(status_code=400, detail="Body must be JSON") from e
    if not isinstance(payload, dict):
        raise HTTPException(status_code=400, detail="Body must be a JSON object")

    user_id = _owner_id(payload)
    if user_id is None:
        logger.info("Ignoring change on %s without user_id", payload.get("table"))
        return WebhookAcceptedResponse(status="ignored")

    if publisher is not None and await publisher.publish(user_id, payload):
        return WebhookAcceptedResponse(delivered="pubsub")
    await service.handle_change_payload(user_id, payload)
    return WebhookAcceptedResponse(delivered="local")
