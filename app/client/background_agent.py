import inspect
import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Optional

from app.client.browser import AgentRuntime
from app.client.notifier import normalize_push_payload

logger = logging.getLogger(__name__)

APP_ENTRY_URL = "/"

@dataclass
class PushEvent:
    data: Any = None

@dataclass
class NotificationEvent:
    notification: Any
    action: str = ""

@dataclass
class MessageEvent:
    data: Dict[str, Any] = field(default_factory=dict)

@dataclass
class SyncEvent:
    tag: str = ""

class BackgroundAgent:
    """
    Agente em segundo plano (service worker): recebe push mesmo sem
    nenhuma aba aberta e trata a interação com a notificação.

    Os handlers ficam registrados por nome de evento, sem globais do runtime.
    """

    def __init__(self, runtime: AgentRuntime):
        self.runtime = runtime
        self._handlers: Dict[str, Callable] = {}
        self.on("install", self.handle_install)
        self.on("activate", self.handle_activate)
        self.on("push", self.handle_push)
        self.on("notificationclick", self.handle_notification_click)
        self.on("notificationclose", self.handle_notification_close)
        self.on("message", self.handle_message)
        self.on("sync", self.handle_sync)

    def on(self, event_name: str, handler: Callable) -> Callable[[], None]:
        """Registra um handler. Retorna a função que o remove."""
        self._handlers[event_name] = handler

        def dispose() -> None:
            if self._handlers.get(event_name) is handler:
                del self._handlers[event_name]

        return dispose

    async def dispatch(self, event_name: str, event: Optional[Any] = None) -> Any:
        handler = self._handlers.get(event_name)
        if handler is None:
            logger.debug(f"Evento '{event_name}' sem handler")
            return None
        result = handler(event)
        if inspect.isawaitable(result):
            result = await result
        return result

    async def handle_install(self, event=None) -> None:
        logger.info("🔔 Service Worker: instalando...")
        await self.runtime.skip_waiting()

    async def handle_activate(self, event=None) -> None:
        logger.info("🔔 Service Worker: ativando...")
        await self.runtime.claim_clients()

    async def handle_push(self, event: PushEvent):
        payload = normalize_push_payload(event.data if event is not None else None)
        options = payload.model_dump(exclude={"title"})
        try:
            await self.runtime.show_notification(payload.title, options)
            logger.info("✅ Notificação exibida")
        except Exception as e:
            logger.error(f"❌ Erro ao exibir notificação: {e}")
        return payload

    async def handle_notification_click(self, event: NotificationEvent):
        logger.info("🔔 Service Worker: notificação clicada")
        event.notification.close()

        # Foca uma janela já aberta do app; senão abre uma nova
        for client in await self.runtime.match_clients(type="window"):
            if client.url.startswith(self.runtime.origin):
                return await client.focus()
        return await self.runtime.open_window(APP_ENTRY_URL)

    def handle_notification_close(self, event: NotificationEvent) -> None:
        logger.info("🔔 Service Worker: notificação fechada")

    async def handle_message(self, event: MessageEvent) -> None:
        data = event.data if event is not None else None
        if isinstance(data, dict) and data.get("type") == "SKIP_WAITING":
            await self.runtime.skip_waiting()

    def handle_sync(self, event: SyncEvent) -> None:
        tag = getattr(event, "tag", "")
        logger.info(f"🔔 Service Worker: background sync '{tag}'")
