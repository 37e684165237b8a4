import json
import logging
from typing import Any, Dict, Optional

import httpx

from app.client.browser import BrowserEnvironment
from app.client.permissions import PermissionState, PermissionStateMachine

logger = logging.getLogger(__name__)

STORAGE_KEY = "push_subscription"
SERVICE_WORKER_URL = "/sw.js"

class ClientSubscriptionManager:
    """
    Pede permissão, cria a inscrição de push no navegador, guarda uma cópia
    local e espelha no servidor. O servidor é um espelho best-effort: a cópia
    local é a fonte da verdade do cliente.
    """

    def __init__(
        self,
        env: BrowserEnvironment,
        user_id: str,
        http: httpx.AsyncClient,
        api_prefix: str = "/api/stream",
        vapid_public_key: Optional[str] = None,
    ):
        self.env = env
        self.user_id = user_id
        self.http = http
        self.api_prefix = api_prefix.rstrip("/")
        self.vapid_public_key = vapid_public_key
        self.permission = PermissionStateMachine.from_environment(env)

    def _url(self, path: str) -> str:
        return f"{self.api_prefix}{path}"

    def stored_subscription(self) -> Optional[Dict[str, Any]]:
        raw = self.env.storage.get_item(STORAGE_KEY)
        if not raw:
            return None
        try:
            return json.loads(raw)
        except ValueError:
            logger.warning("⚠️ Inscrição local corrompida, ignorando")
            return None

    async def _public_key(self) -> str:
        if not self.vapid_public_key:
            response = await self.http.get(self._url("/vapid-public-key"))
            response.raise_for_status()
            self.vapid_public_key = response.json()["publicKey"]
        return self.vapid_public_key

    async def enable(self) -> Optional[Dict[str, Any]]:
        """
        Fluxo completo de ativação. Retorna o descritor criado, ou None se o
        navegador não suporta push ou a permissão não foi concedida.
        """
        if self.permission.state is PermissionState.UNSUPPORTED:
            logger.warning("⚠️ Push não suportado neste navegador")
            return None

        state = await self.permission.request(self.env.request_notification_permission)
        if state is not PermissionState.GRANTED:
            logger.warning(f"⚠️ Permissão de notificação: {state.value}")
            return None

        try:
            registration = await self.env.register_service_worker(SERVICE_WORKER_URL)
            logger.info("✅ Service worker registrado")

            subscription = await registration.push_manager.subscribe(
                user_visible_only=True,
                application_server_key=await self._public_key(),
            )
            descriptor = subscription.to_json()
            self.env.storage.set_item(STORAGE_KEY, json.dumps(descriptor))
        except (httpx.HTTPError, KeyError, ValueError) as e:
            # Falha ao obter a chave pública do servidor
            logger.error(f"❌ Não foi possível obter a chave VAPID: {e}")
            return None
        except Exception as e:
            # Erros do navegador (service worker, pushManager) viram estado, não exceção
            logger.error(f"❌ Erro ao criar inscrição de push: {e}")
            return None

        await self._register_with_server(descriptor)
        logger.info("✅ Inscrição de push criada e guardada localmente")
        return descriptor

    async def _register_with_server(self, descriptor: Dict[str, Any]) -> bool:
        try:
            response = await self.http.post(
                self._url("/register-push-subscription"),
                json={"userId": self.user_id, "subscription": descriptor},
            )
        except httpx.HTTPError as e:
            logger.warning(f"⚠️ Não foi possível registrar a inscrição no servidor: {e}")
            return False

        if response.is_success:
            logger.info("✅ Inscrição registrada no servidor")
            return True
        logger.warning(f"⚠️ Servidor recusou a inscrição ({response.status_code})")
        return False

    async def disable(self) -> None:
        """Cancela a inscrição no navegador, limpa a cópia local e o registro do servidor."""
        registration = await self.env.get_service_worker_registration()
        if registration is not None:
            subscription = await registration.push_manager.get_subscription()
            if subscription is not None:
                await subscription.unsubscribe()
        self.env.storage.remove_item(STORAGE_KEY)

        try:
            response = await self.http.request(
                "DELETE",
                self._url("/register-push-subscription"),
                json={"userId": self.user_id},
            )
            if not response.is_success:
                logger.warning(f"⚠️ Falha ao remover inscrição no servidor ({response.status_code})")
        except httpx.HTTPError as e:
            logger.warning(f"⚠️ Não foi possível remover a inscrição no servidor: {e}")

        logger.info("✅ Notificações push desativadas")
