"""Taxonomia de erros do relay de push."""


class PushRelayError(Exception):
    """Base de todos os erros do relay."""


class ConfigurationError(PushRelayError):
    """Configuração obrigatória (chaves VAPID) ausente ou inválida."""


class ValidationError(PushRelayError):
    """Requisição com campos ausentes ou malformados (vira 400)."""

    def __init__(self, message: str, details=None):
        super().__init__(message)
        self.details = details


class ParseError(PushRelayError):
    """Envelope de webhook ou payload de push ilegível."""


class DeliveryError(PushRelayError):
    """Base das falhas de entrega de push."""

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


class SubscriptionInvalid(DeliveryError):
    """O serviço de push informou que o endpoint expirou (404/410)."""


class TransientDeliveryError(DeliveryError):
    """Falha de rede ou do provedor, sem relação com a inscrição."""


class MalformedPayload(DeliveryError):
    """Payload não serializável ou acima do limite do provedor."""
