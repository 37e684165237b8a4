import hashlib
import hmac
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List

from pydantic import ValidationError as PydanticValidationError

from app.core.exceptions import ParseError
from app.schemas.notification import chat_message_payload
from app.schemas.webhook import EVENT_MODELS, MessageNewEvent, UnknownEvent, WebhookEvent

logger = logging.getLogger(__name__)

@dataclass
class WebhookOutcome:
    event_type: str
    handled: bool = False
    delivered: List[str] = field(default_factory=list)
    skipped: List[str] = field(default_factory=list)
    failed: Dict[str, str] = field(default_factory=dict)

def parse_event(envelope: Dict[str, Any]) -> WebhookEvent:
    """
    Converte o envelope do provedor no evento tipado, pelo campo `type`.
    Tipos desconhecidos viram UnknownEvent; campos inválidos geram ParseError.
    """
    if not isinstance(envelope, dict) or not isinstance(envelope.get("type"), str):
        raise ParseError("Webhook envelope without a string 'type'")

    model = EVENT_MODELS.get(envelope["type"], UnknownEvent)
    try:
        return model.model_validate(envelope)
    except PydanticValidationError as ex:
        raise ParseError(f"Invalid '{envelope['type']}' event: {ex.error_count()} error(s)") from ex

def verify_signature(raw_body: bytes, signature: str, secret: str) -> bool:
    """Assinatura do provedor: HMAC-SHA256 do corpo cru com o API secret."""
    expected = hmac.new(secret.encode("utf-8"), raw_body, hashlib.sha256).hexdigest()
    return hmac.compare_digest(expected, signature or "")

class WebhookHandler:
    """Recebe eventos do chat e distribui um push por destinatário (fan-out)."""

    def __init__(self, registry, dispatcher):
        self.registry = registry
        self.dispatcher = dispatcher

    def handle(self, envelope: Dict[str, Any]) -> WebhookOutcome:
        event_type = envelope.get("type") if isinstance(envelope, dict) else None
        outcome = WebhookOutcome(event_type=str(event_type))

        try:
            event = parse_event(envelope)
        except ParseError as ex:
            logger.error(f"❌ Evento de webhook ignorado: {ex}")
            return outcome

        if isinstance(event, MessageNewEvent):
            self._handle_new_message(event, outcome)
            outcome.handled = True
        elif event.type == "user.presence":
            # Reservado para uso futuro
            logger.info("👤 Atualização de presença recebida")
        else:
            logger.info(f"Evento '{event.type}' ignorado")
        return outcome

    def _handle_new_message(self, event: MessageNewEvent, outcome: WebhookOutcome) -> None:
        recipients = event.recipients()
        logger.info(
            f"📨 Nova mensagem {event.message.id} no canal {event.channel.id} "
            f"de {event.user.id}; destinatários: {recipients}"
        )

        payload = chat_message_payload(
            sender_id=event.user.id,
            sender_name=event.user.name,
            channel_id=event.channel.id,
            message_id=event.message.id,
            text=event.message.text,
        )

        # Cada destinatário é independente: a falha de um não bloqueia os outros
        for recipient_id in recipients:
            try:
                result = self.dispatcher.deliver_to_user(self.registry, recipient_id, payload)
            except Exception as e:
                logger.error(f"❌ Falha ao enviar push para {recipient_id}: {e}")
                outcome.failed[recipient_id] = str(e)
                continue

            if result is None:
                outcome.skipped.append(recipient_id)
            elif result.ok:
                outcome.delivered.append(recipient_id)
            else:
                logger.error(f"❌ Falha ao enviar push para {recipient_id}: {result.kind.value} {result.detail}")
                outcome.failed[recipient_id] = result.kind.value
