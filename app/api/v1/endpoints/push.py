import json
import logging
from datetime import datetime, timezone
from typing import Optional

from fastapi import APIRouter, Depends, Header, HTTPException
from pydantic import ValidationError as PydanticValidationError

from app.api import deps
from app.core.config import settings
from app.core.exceptions import ValidationError
from app.schemas.notification import NotificationPayload, NotificationTestRequest, SendPushRequest
from app.schemas.subscription import PushSubscriptionDescriptor
from app.services.push import PushDispatcher

logger = logging.getLogger(__name__)

router = APIRouter()

def _descriptor_from_header(raw: Optional[str]) -> PushSubscriptionDescriptor:
    if not raw:
        raise ValidationError("No push subscription provided")
    try:
        return PushSubscriptionDescriptor.model_validate(json.loads(raw))
    except (ValueError, PydanticValidationError) as e:
        # JSONDecodeError também é ValueError
        raise ValidationError("Invalid push subscription header", details=str(e)) from e

@router.post("/send-push-notification")
def send_push_notification(
    req: SendPushRequest,
    x_push_subscription: Optional[str] = Header(None),
    dispatcher: PushDispatcher = Depends(deps.get_dispatcher),
):
    """
    Caminho do cliente em segundo plano: o descritor vem no header
    `x-push-subscription`, sem consulta ao registro.
    """
    descriptor = _descriptor_from_header(x_push_subscription)
    logger.info(f"🔔 Enviando push: {req.title}")

    result = dispatcher.send(descriptor, NotificationPayload(
        title=req.title,
        body=req.body,
        data=req.data or {},
    ))
    if not result.ok:
        raise HTTPException(500, {
            "error": "Failed to send push notification",
            "details": f"{result.kind.value}: {result.detail}",
        })

    return {"success": True, "message": "Push notification sent successfully"}

@router.post("/test-notification")
def build_test_notification(req: Optional[NotificationTestRequest] = None):
    """Devolve um payload de teste para o cliente exibir localmente."""
    req = req or NotificationTestRequest()
    notification = NotificationPayload(
        title=req.title or "Test Notification",
        body=req.body or "This is a test notification",
        tag="test-notification",
    )
    return {"success": True, "message": "Test notification data", "notification": notification.model_dump()}

@router.get("/test-notification-system")
def notification_system_status():
    return {
        "success": True,
        "message": "Notification system is configured",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "features": {
            "vapid": bool(settings.VAPID_PUBLIC_KEY and settings.VAPID_PRIVATE_KEY),
            "registryBackend": settings.REGISTRY_BACKEND,
            "webhookSignature": settings.WEBHOOK_VERIFY_SIGNATURE,
            "placeholderChatCredentials": settings.uses_placeholder_stream_credentials,
        },
    }
