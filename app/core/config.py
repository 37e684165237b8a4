from pydantic import Field, ValidationError
from pydantic_settings import BaseSettings
from typing import Literal

from app.core.exceptions import ConfigurationError

PLACEHOLDER_STREAM_API_KEY = "mmhfdzb5evj2"
PLACEHOLDER_STREAM_API_SECRET = "demo_secret"

class Settings(BaseSettings):
    # --- GERAIS ---
    PROJECT_NAME: str = "Chat Push Relay"
    API_PREFIX: str = "/api/stream"
    FRONTEND_URL: str = "http://localhost:3000"
    LOG_LEVEL: str = "INFO"

    # --- PUSH NOTIFICATIONS ---
    # Sem valor padrão: se faltar no .env, o carregamento falha na hora.
    VAPID_PUBLIC_KEY: str = Field(min_length=1)
    VAPID_PRIVATE_KEY: str = Field(min_length=1)
    VAPID_CLAIMS_EMAIL: str = "mailto:admin@example.com"

    PUSH_TIMEOUT_SECONDS: float = 10.0
    PUSH_TTL_SECONDS: int = 86400
    PUSH_MAX_RETRIES: int = 2
    PUSH_RETRY_BACKOFF_SECONDS: float = 0.5
    PUSH_MAX_PAYLOAD_BYTES: int = 4000

    # --- CHAT PROVIDER ---
    # Valores de demonstração. Nunca usar em produção.
    STREAM_API_KEY: str = PLACEHOLDER_STREAM_API_KEY
    STREAM_API_SECRET: str = PLACEHOLDER_STREAM_API_SECRET
    WEBHOOK_VERIFY_SIGNATURE: bool = False

    # --- REGISTRO DE INSCRIÇÕES ---
    REGISTRY_BACKEND: Literal["memory", "sql"] = "memory"
    SQLALCHEMY_DATABASE_URI: str = "sqlite:///./push_subscriptions.db"

    class Config:
        env_file = ".env"
        case_sensitive = True

    @property
    def uses_placeholder_stream_credentials(self) -> bool:
        return (
            self.STREAM_API_KEY == PLACEHOLDER_STREAM_API_KEY
            or self.STREAM_API_SECRET == PLACEHOLDER_STREAM_API_SECRET
        )

def get_settings() -> Settings:
    """Carrega as configurações ou aborta com um ConfigurationError legível."""
    try:
        return Settings()
    except ValidationError as exc:
        missing = sorted({".".join(str(p) for p in err["loc"]) for err in exc.errors()})
        raise ConfigurationError(
            f"Invalid or missing configuration: {', '.join(missing)}"
        ) from exc

settings = get_settings()
