import logging
from fastapi import APIRouter, Depends, HTTPException

from app.api import deps
from app.core.config import settings
from app.schemas.notification import NotificationPayload
from app.schemas.subscription import DirectSendRequest, RegisterSubscriptionRequest, UnregisterSubscriptionRequest
from app.services.push import FailureKind, PushDispatcher
from app.services.registry import SubscriptionStore

logger = logging.getLogger(__name__)

router = APIRouter()

@router.get("/vapid-public-key")
def get_vapid_public_key():
    return {"publicKey": settings.VAPID_PUBLIC_KEY}

@router.post("/register-push-subscription")
def register_push_subscription(
    sub_in: RegisterSubscriptionRequest,
    registry: SubscriptionStore = Depends(deps.get_registry),
    dispatcher: PushDispatcher = Depends(deps.get_dispatcher),
):
    """
    Guarda a inscrição (última vence) e valida com um push de teste.
    """
    logger.info(f"🔔 Registrando inscrição do usuário {sub_in.userId}")
    registry.put(sub_in.userId, sub_in.subscription)

    result = dispatcher.send(sub_in.subscription, NotificationPayload(
        title="Test Notification",
        body="Push notifications are working!",
    ))
    if not result.ok:
        if result.kind is FailureKind.INVALID_SUBSCRIPTION:
            registry.delete(sub_in.userId)
        raise HTTPException(400, {"error": "Invalid push subscription", "details": result.detail})

    logger.info("✅ Inscrição validada e armazenada")
    return {"success": True, "message": "Push subscription registered successfully"}

@router.put("/register-push-subscription")
def send_to_registered_user(
    req: DirectSendRequest,
    registry: SubscriptionStore = Depends(deps.get_registry),
    dispatcher: PushDispatcher = Depends(deps.get_dispatcher),
):
    """Envia um push direto para a inscrição registrada de um usuário."""
    payload = NotificationPayload(title=req.title, body=req.body, data=req.data)
    result = dispatcher.deliver_to_user(registry, req.userId, payload)

    if result is None:
        raise HTTPException(404, "No push subscription registered for this user")
    if not result.ok:
        if result.kind is FailureKind.INVALID_SUBSCRIPTION:
            raise HTTPException(410, {"error": "Push subscription expired and was removed", "details": result.detail})
        raise HTTPException(500, {"error": "Failed to send push notification", "details": result.detail})

    return {"success": True, "message": "Push notification sent successfully"}

@router.delete("/register-push-subscription")
def unregister_push_subscription(
    req: UnregisterSubscriptionRequest,
    registry: SubscriptionStore = Depends(deps.get_registry),
):
    registry.delete(req.userId)
    return {"success": True, "message": "Push subscription removed"}
