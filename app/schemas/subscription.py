from pydantic import BaseModel, ConfigDict, Field
from typing import Any, Dict, Optional

class PushKeys(BaseModel):
    model_config = ConfigDict(extra="allow")

    p256dh: str = Field(min_length=1)
    auth: str = Field(min_length=1)

class PushSubscriptionDescriptor(BaseModel):
    """
    Descritor opaco gerado pelo PushManager do navegador.
    Campos extras são preservados para devolver o objeto exatamente como veio.
    """
    model_config = ConfigDict(extra="allow")

    endpoint: str = Field(min_length=1)
    keys: PushKeys
    expirationTime: Optional[float] = None

    def to_subscription_info(self) -> Dict[str, Any]:
        # Formato esperado pelo pywebpush
        return {
            "endpoint": self.endpoint,
            "keys": {"p256dh": self.keys.p256dh, "auth": self.keys.auth},
        }

class RegisterSubscriptionRequest(BaseModel):
    userId: str = Field(min_length=1)
    subscription: PushSubscriptionDescriptor

class DirectSendRequest(BaseModel):
    userId: str = Field(min_length=1)
    title: str = Field(min_length=1)
    body: str = Field(min_length=1)
    data: Dict[str, Any] = Field(default_factory=dict)

class UnregisterSubscriptionRequest(BaseModel):
    userId: str = Field(min_length=1)
