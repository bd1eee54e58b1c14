import json

from fastapi import APIRouter, Depends, Request
from loguru import logger

from favely.config import Settings, get_settings
from favely.errors import ValidationError
from favely.providers import verify_webhook
from favely.routes.deps import get_user_service
from favely.services.user_service import UserService

router = APIRouter(prefix="/webhooks", tags=["webhooks"])


@router.post("/clerk")
async def clerk_webhook(
    request: Request,
    settings: Settings = Depends(get_settings),
    svc: UserService = Depends(get_user_service),
):
    """User lifecycle events pushed by the identity provider."""
    payload = await request.body()
    verify_webhook(payload, request.headers, settings.clerk_webhook_secret)
    try:
        event = json.loads(payload)
    except ValueError:
        raise ValidationError("Webhook payload is not valid JSON")
    if not isinstance(event, dict) or not isinstance(event.get("data"), dict):
        raise ValidationError("Webhook payload has no data")

    logger.bind(event=event.get("type")).info("► [Webhooks] Identity provider event received")
    return svc.sync_from_webhook(event.get("type", ""), event["data"])
