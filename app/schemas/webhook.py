from pydantic import BaseModel, ConfigDict, Field, field_validator
from typing import Any, Dict, List, Literal, Optional, Union

class ChatUser(BaseModel):
    model_config = ConfigDict(extra="allow")

    id: str = Field(min_length=1)
    name: Optional[str] = None

class ChatMessage(BaseModel):
    model_config = ConfigDict(extra="allow")

    id: str = Field(min_length=1)
    text: Optional[str] = None

class ChatChannel(BaseModel):
    model_config = ConfigDict(extra="allow")

    id: str = Field(min_length=1)
    members: List[str] = Field(default_factory=list)

    @field_validator("members", mode="before")
    @classmethod
    def normalize_members(cls, v: Any) -> List[str]:
        """
        Aceita os dois formatos que o provedor envia:
        - dict indexado pelo id do usuário: {"alice": {...}, "bob": {...}}
        - lista de membros: [{"user_id": "alice"}, {"user": {"id": "bob"}}]
        """
        if v is None:
            return []
        if isinstance(v, dict):
            return [str(k) for k in v.keys()]
        if not isinstance(v, list):
            raise ValueError("members must be an object or a list")

        ids = []
        for member in v:
            if isinstance(member, str):
                ids.append(member)
            elif isinstance(member, dict):
                user = member.get("user")
                member_id = member.get("user_id") or (user.get("id") if isinstance(user, dict) else None)
                if not member_id:
                    raise ValueError("channel member without user id")
                ids.append(str(member_id))
            else:
                raise ValueError("unsupported member entry")
        return ids

class MessageNewEvent(BaseModel):
    type: Literal["message.new"]
    message: ChatMessage
    channel: ChatChannel
    user: ChatUser

    def recipients(self) -> List[str]:
        """Membros do canal menos o remetente, sem repetição e na ordem original."""
        seen = set()
        result = []
        for member_id in self.channel.members:
            if member_id == self.user.id or member_id in seen:
                continue
            seen.add(member_id)
            result.append(member_id)
        return result

class UserPresenceEvent(BaseModel):
    model_config = ConfigDict(extra="allow")

    type: Literal["user.presence"]
    user: Optional[Dict[str, Any]] = None

class UnknownEvent(BaseModel):
    model_config = ConfigDict(extra="allow")

    type: str

WebhookEvent = Union[MessageNewEvent, UserPresenceEvent, UnknownEvent]

EVENT_MODELS = {
    "message.new": MessageNewEvent,
    "user.presence": UserPresenceEvent,
}
