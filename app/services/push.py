import enum
import json
import logging
import time
from dataclasses import dataclass
from typing import Any, Dict, Optional

import requests
from pywebpush import webpush, WebPushException

from app.core.exceptions import MalformedPayload, SubscriptionInvalid, TransientDeliveryError
from app.schemas.notification import NotificationPayload
from app.schemas.subscription import PushSubscriptionDescriptor

logger = logging.getLogger(__name__)

GONE_STATUSES = {404, 410}
TOO_LARGE_STATUS = 413

class FailureKind(str, enum.Enum):
    INVALID_SUBSCRIPTION = "InvalidSubscription"
    TRANSIENT = "TransientDeliveryError"
    MALFORMED_PAYLOAD = "MalformedPayload"

_FAILURE_EXCEPTIONS = {
    FailureKind.INVALID_SUBSCRIPTION: SubscriptionInvalid,
    FailureKind.TRANSIENT: TransientDeliveryError,
    FailureKind.MALFORMED_PAYLOAD: MalformedPayload,
}

@dataclass(frozen=True)
class DeliveryResult:
    ok: bool
    kind: Optional[FailureKind] = None
    detail: str = ""
    status_code: Optional[int] = None
    attempts: int = 1

    @classmethod
    def success(cls, attempts: int = 1) -> "DeliveryResult":
        return cls(ok=True, attempts=attempts)

    @classmethod
    def failure(cls, kind: FailureKind, detail: str, status_code: Optional[int] = None, attempts: int = 1) -> "DeliveryResult":
        return cls(ok=False, kind=kind, detail=detail, status_code=status_code, attempts=attempts)

    def raise_for_failure(self) -> None:
        """Converte a falha na exceção correspondente da taxonomia."""
        if self.ok:
            return
        raise _FAILURE_EXCEPTIONS[self.kind](self.detail, status_code=self.status_code)

def _status_of(ex: WebPushException) -> Optional[int]:
    response = getattr(ex, "response", None)
    status = getattr(response, "status_code", None)
    return status if isinstance(status, int) else None

def _is_retryable(status: int) -> bool:
    # 429 e 5xx = instabilidade do provedor
    return status == 429 or 500 <= status < 600

class PushDispatcher:
    """
    Entrega payloads via protocolo Web Push (VAPID + aes128gcm).
    Uma requisição por tentativa, sem lote. Falhas transitórias têm retry com backoff.
    """

    def __init__(
        self,
        vapid_private_key: str,
        vapid_claims_email: str,
        timeout: float = 10.0,
        ttl: int = 86400,
        max_retries: int = 2,
        backoff_seconds: float = 0.5,
        max_payload_bytes: int = 4000,
        sleep=time.sleep,
    ):
        self.vapid_private_key = vapid_private_key
        self.vapid_claims_email = vapid_claims_email
        self.timeout = timeout
        self.ttl = ttl
        self.max_retries = max_retries
        self.backoff_seconds = backoff_seconds
        self.max_payload_bytes = max_payload_bytes
        self._sleep = sleep

    @classmethod
    def from_settings(cls, settings) -> "PushDispatcher":
        return cls(
            vapid_private_key=settings.VAPID_PRIVATE_KEY,
            vapid_claims_email=settings.VAPID_CLAIMS_EMAIL,
            timeout=settings.PUSH_TIMEOUT_SECONDS,
            ttl=settings.PUSH_TTL_SECONDS,
            max_retries=settings.PUSH_MAX_RETRIES,
            backoff_seconds=settings.PUSH_RETRY_BACKOFF_SECONDS,
            max_payload_bytes=settings.PUSH_MAX_PAYLOAD_BYTES,
        )

    def _serialize(self, payload) -> str:
        if isinstance(payload, NotificationPayload):
            payload = payload.to_push_dict()
        try:
            data = json.dumps(payload)
        except (TypeError, ValueError) as ex:
            raise MalformedPayload(f"Payload is not JSON serializable: {ex}") from ex
        size = len(data.encode("utf-8"))
        if size > self.max_payload_bytes:
            raise MalformedPayload(f"Payload has {size} bytes, limit is {self.max_payload_bytes}")
        return data

    def _claims(self) -> Dict[str, Any]:
        # O pywebpush altera o dict (aud/exp); um novo a cada envio
        sub = self.vapid_claims_email
        if not sub.startswith(("mailto:", "https:")):
            sub = f"mailto:{sub}"
        return {"sub": sub}

    def send(self, descriptor: PushSubscriptionDescriptor, payload) -> DeliveryResult:
        """Envia um push para uma inscrição específica e classifica o resultado."""
        try:
            data = self._serialize(payload)
        except MalformedPayload as ex:
            logger.error(f"❌ Payload inválido: {ex}")
            return DeliveryResult.failure(FailureKind.MALFORMED_PAYLOAD, str(ex), attempts=0)

        attempt = 0
        while True:
            attempt += 1
            try:
                webpush(
                    subscription_info=descriptor.to_subscription_info(),
                    data=data,
                    vapid_private_key=self.vapid_private_key,
                    vapid_claims=self._claims(),
                    timeout=self.timeout,
                    ttl=self.ttl,
                )
                return DeliveryResult.success(attempts=attempt)
            except WebPushException as ex:
                status = _status_of(ex)
                if status is None:
                    # Rejeitada pelo pywebpush antes da requisição (chaves inválidas)
                    logger.warning(f"🗑️ Inscrição inválida: {ex}")
                    return DeliveryResult.failure(FailureKind.INVALID_SUBSCRIPTION, str(ex), None, attempt)
                if status in GONE_STATUSES:
                    logger.warning(f"🗑️ Inscrição expirada ({status}): {descriptor.endpoint[:60]}")
                    return DeliveryResult.failure(FailureKind.INVALID_SUBSCRIPTION, str(ex), status, attempt)
                if status == TOO_LARGE_STATUS:
                    return DeliveryResult.failure(FailureKind.MALFORMED_PAYLOAD, str(ex), status, attempt)
                error, retryable = str(ex), _is_retryable(status)
            except requests.RequestException as ex:
                status, error, retryable = None, f"Network error: {ex}", True

            if not retryable or attempt > self.max_retries:
                logger.error(f"❌ Erro Push após {attempt} tentativa(s): {error}")
                return DeliveryResult.failure(FailureKind.TRANSIENT, error, status, attempt)

            delay = self.backoff_seconds * (2 ** (attempt - 1))
            logger.info(f"🔁 Falha transitória ({status or 'rede'}), nova tentativa em {delay:.2f}s")
            self._sleep(delay)

    def deliver_to_user(self, registry, user_id: str, payload) -> Optional[DeliveryResult]:
        """
        Busca a inscrição do usuário e envia.
        Retorna None quando o usuário não tem inscrição.
        Inscrição expirada é removida do registro.
        """
        descriptor = registry.get(user_id)
        if descriptor is None:
            logger.info(f"⚠️ Nenhuma inscrição encontrada para o usuário {user_id}")
            return None

        result = self.send(descriptor, payload)
        if result.ok:
            logger.info(f"✅ Push enviado para o usuário {user_id}")
        elif result.kind is FailureKind.INVALID_SUBSCRIPTION:
            # Só remove se ninguém re-registrou durante o envio
            current = registry.get(user_id)
            if current is not None and current.endpoint == descriptor.endpoint:
                registry.delete(user_id)
        return result
