from pydantic import BaseModel, ConfigDict, Field
from typing import Any, Dict, List, Optional

DEFAULT_ICON = "/favicon.ico"
DEFAULT_TAG = "chat-message"
DEFAULT_VIBRATE = [200, 100, 200]

class NotificationPayload(BaseModel):
    """Payload de exibição de uma notificação. Imutável depois de criado."""
    model_config = ConfigDict(frozen=True)

    title: str
    body: str
    icon: str = DEFAULT_ICON
    badge: str = DEFAULT_ICON
    tag: str = DEFAULT_TAG
    requireInteraction: bool = False
    silent: bool = False
    vibrate: List[int] = Field(default_factory=lambda: list(DEFAULT_VIBRATE))
    data: Dict[str, Any] = Field(default_factory=dict)

    def to_push_dict(self) -> Dict[str, Any]:
        return self.model_dump()

class SendPushRequest(BaseModel):
    title: str = Field(min_length=1)
    body: str = Field(min_length=1)
    data: Optional[Dict[str, Any]] = None

class NotificationTestRequest(BaseModel):
    title: Optional[str] = None
    body: Optional[str] = None

def chat_message_payload(
    sender_id: str,
    sender_name: Optional[str],
    channel_id: str,
    message_id: str,
    text: Optional[str],
) -> NotificationPayload:
    """Monta o payload padrão de "nova mensagem" usado pelo webhook e pelo cliente."""
    return NotificationPayload(
        title=f"New message from {sender_name or 'Someone'}",
        body=text or "New message",
        data={
            "channelId": channel_id,
            "messageId": message_id,
            "senderId": sender_id,
            "senderName": sender_name,
        },
    )
