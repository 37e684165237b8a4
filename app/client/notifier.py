import asyncio
import json
import logging
from typing import Any, Callable, Dict, Optional

import httpx

from app.client.browser import BrowserEnvironment, ChatClient
from app.client.subscription_manager import STORAGE_KEY
from app.core.exceptions import ParseError
from app.schemas.notification import NotificationPayload, chat_message_payload

logger = logging.getLogger(__name__)

AUTO_DISMISS_SECONDS = 5

FOREGROUND = "foreground"
BACKGROUND = "background"

def default_push_payload() -> Dict[str, Any]:
    return {
        "title": "New Message",
        "body": "You have a new message",
        "requireInteraction": True,
        "data": {},
    }

def normalize_push_payload(raw) -> NotificationPayload:
    """
    Normaliza o payload recebido pelo agente. Aceita os dois envelopes:
    {title, body, data} e {notification: {title, body}}.
    Payload ilegível vira o padrão, com log do erro.
    """
    merged = default_push_payload()
    try:
        if raw is None:
            return NotificationPayload(**merged)
        if isinstance(raw, (bytes, bytearray)):
            raw = raw.decode("utf-8")
        data = json.loads(raw) if isinstance(raw, str) else raw
        if not isinstance(data, dict):
            raise ParseError(f"Push payload must be an object, got {type(data).__name__}")

        if data.get("title"):
            merged["title"] = str(data["title"])
        if data.get("body"):
            merged["body"] = str(data["body"])

        nested = data.get("notification")
        if isinstance(nested, dict):
            merged["title"] = str(nested.get("title") or merged["title"])
            merged["body"] = str(nested.get("body") or merged["body"])

        if isinstance(data.get("data"), dict):
            merged["data"] = data["data"]
    except (ValueError, ParseError) as e:
        # json.JSONDecodeError e UnicodeDecodeError são ValueError
        logger.error(f"❌ Erro ao ler payload do push: {e}")
        merged = default_push_payload()
    return NotificationPayload(**merged)

def _event_ids(event: Dict[str, Any]):
    user = event.get("user") or {}
    channel = event.get("channel") or {}
    message = event.get("message") or {}
    return (
        user.get("id"),
        user.get("name"),
        channel.get("id") or event.get("channel_id"),
        message.get("id"),
        message.get("text"),
    )

class ForegroundBackgroundNotifier:
    """
    Decide, para cada mensagem recebida, entre notificação local (aba com foco)
    ou pedido de push ao servidor (aba sem foco).
    """

    def __init__(
        self,
        env: BrowserEnvironment,
        current_user_id: str,
        http: httpx.AsyncClient,
        api_prefix: str = "/api/stream",
        on_message_received: Optional[Callable[[str, str], Any]] = None,
        call_later: Optional[Callable[[float, Callable[[], None]], Any]] = None,
    ):
        self.env = env
        self.current_user_id = current_user_id
        self.http = http
        self.api_prefix = api_prefix.rstrip("/")
        self.on_message_received = on_message_received
        self._call_later = call_later

    def _schedule(self, delay: float, callback: Callable[[], None]) -> Any:
        if self._call_later is not None:
            return self._call_later(delay, callback)
        return asyncio.get_running_loop().call_later(delay, callback)

    async def handle_message_event(self, event: Dict[str, Any]) -> Optional[str]:
        """Retorna qual caminho foi usado ("foreground"/"background") ou None."""
        sender_id, sender_name, channel_id, message_id, text = _event_ids(event)

        if sender_id == self.current_user_id:
            logger.debug("Mensagem do próprio usuário, ignorando")
            return None
        if not channel_id or not message_id:
            logger.warning("⚠️ Evento sem id de canal ou de mensagem")
            return None

        payload = chat_message_payload(sender_id, sender_name, channel_id, message_id, text)

        if self.env.has_focus():
            logger.info("📱 Aba em foco, mostrando notificação local")
            self.show_local_notification(payload)
            return FOREGROUND

        logger.info("🔔 Aba sem foco, pedindo push ao servidor")
        await self.request_background_push(payload)
        return BACKGROUND

    def show_local_notification(self, payload: NotificationPayload):
        if self.env.notification_permission() != "granted":
            logger.warning("⚠️ Sem permissão para mostrar notificação local")
            return None

        options = payload.model_dump(exclude={"title"})
        notification = self.env.show_notification(payload.title, options)
        self._schedule(AUTO_DISMISS_SECONDS, notification.close)

        channel_id = payload.data.get("channelId")
        message_id = payload.data.get("messageId")

        def on_click():
            self.env.focus_window()
            notification.close()
            if self.on_message_received and channel_id and message_id:
                self.on_message_received(channel_id, message_id)

        notification.onclick = on_click
        return notification

    async def request_background_push(self, payload: NotificationPayload) -> bool:
        subscription = self.env.storage.get_item(STORAGE_KEY)
        if not subscription:
            logger.warning("⚠️ Nenhuma inscrição de push guardada localmente")
            return False

        try:
            response = await self.http.post(
                f"{self.api_prefix}/send-push-notification",
                json={"title": payload.title, "body": payload.body, "data": payload.data},
                headers={"x-push-subscription": subscription},
            )
        except httpx.HTTPError as e:
            logger.warning(f"⚠️ Não foi possível pedir o push ao servidor: {e}")
            return False

        if not response.is_success:
            logger.warning(f"⚠️ Servidor não enviou o push ({response.status_code}): {response.text}")
            return False
        logger.info("✅ Push solicitado ao servidor")
        return True

    def attach(self, chat_client: ChatClient) -> Callable[[], None]:
        """Escuta `message.new` no cliente de chat. Retorna a função que desfaz a escuta."""
        chat_client.on("message.new", self.handle_message_event)
        attached = True

        def dispose() -> None:
            nonlocal attached
            if attached:
                chat_client.off("message.new", self.handle_message_event)
                attached = False
                logger.info("🧹 Listener de notificações removido")

        return dispose
