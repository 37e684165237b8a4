import json
import logging
from typing import Optional

from fastapi import APIRouter, Depends, Header, Request
from fastapi.concurrency import run_in_threadpool
from fastapi.responses import JSONResponse

from app.api import deps
from app.core.config import settings
from app.services.webhook import WebhookHandler, verify_signature

logger = logging.getLogger(__name__)

router = APIRouter()

@router.post("/webhook")
async def receive_webhook(
    request: Request,
    x_signature: Optional[str] = Header(None),
    handler: WebhookHandler = Depends(deps.get_webhook_handler),
):
    """
    Responde 200 mesmo quando algum destinatário falha.
    Só um corpo ilegível devolve 500.
    """
    raw = await request.body()

    if settings.WEBHOOK_VERIFY_SIGNATURE and not verify_signature(raw, x_signature, settings.STREAM_API_SECRET):
        logger.warning("🚫 Webhook com assinatura inválida")
        return JSONResponse(status_code=401, content={"success": False, "error": "Invalid webhook signature"})

    try:
        envelope = json.loads(raw)
    except ValueError as e:
        logger.error(f"❌ Erro no webhook: {e}")
        return JSONResponse(status_code=500, content={"success": False})

    logger.info(f"🔔 Webhook recebido: {envelope.get('type') if isinstance(envelope, dict) else '?'}")
    outcome = await run_in_threadpool(handler.handle, envelope)
    if outcome.failed:
        logger.warning(f"⚠️ Falhas no fan-out: {outcome.failed}")

    return {"success": True}
