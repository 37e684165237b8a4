"""
Interfaces das capacidades do navegador usadas pelo lado cliente.

Nada aqui depende de um runtime específico: a página (ou os testes)
fornece implementações concretas destes protocolos.
"""
from typing import Any, Awaitable, Callable, Dict, List, Optional, Protocol

class NotificationHandle(Protocol):
    onclick: Optional[Callable[[], None]]

    def close(self) -> None: ...

class PushSubscriptionHandle(Protocol):
    def to_json(self) -> Dict[str, Any]: ...

    async def unsubscribe(self) -> bool: ...

class PushManager(Protocol):
    async def subscribe(self, user_visible_only: bool, application_server_key: str) -> PushSubscriptionHandle: ...

    async def get_subscription(self) -> Optional[PushSubscriptionHandle]: ...

class AgentRegistration(Protocol):
    push_manager: PushManager

class LocalStorage(Protocol):
    def get_item(self, key: str) -> Optional[str]: ...

    def set_item(self, key: str, value: str) -> None: ...

    def remove_item(self, key: str) -> None: ...

class BrowserEnvironment(Protocol):
    storage: LocalStorage

    def supports_push(self) -> bool:
        """Notification + serviceWorker + PushManager disponíveis."""

    def notification_permission(self) -> str:
        """"default", "granted" ou "denied"."""

    async def request_notification_permission(self) -> str: ...

    async def register_service_worker(self, script_url: str) -> AgentRegistration: ...

    async def get_service_worker_registration(self) -> Optional[AgentRegistration]: ...

    def has_focus(self) -> bool: ...

    def focus_window(self) -> None: ...

    def show_notification(self, title: str, options: Dict[str, Any]) -> NotificationHandle: ...

Listener = Callable[[Dict[str, Any]], Optional[Awaitable[None]]]

class ChatClient(Protocol):
    """Parte do SDK de chat que o notificador usa."""

    user_id: Optional[str]

    def on(self, event_type: str, listener: Listener) -> None: ...

    def off(self, event_type: str, listener: Listener) -> None: ...

class WindowClient(Protocol):
    url: str

    async def focus(self) -> Any: ...

class AgentRuntime(Protocol):
    """Capacidades do agente em segundo plano (service worker)."""

    origin: str

    async def show_notification(self, title: str, options: Dict[str, Any]) -> None: ...

    async def match_clients(self, type: str = "window") -> List[WindowClient]: ...

    async def open_window(self, url: str) -> Any: ...

    async def skip_waiting(self) -> None: ...

    async def claim_clients(self) -> None: ...
