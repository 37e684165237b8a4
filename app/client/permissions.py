import enum
import logging
from typing import Awaitable, Callable

from app.client.browser import BrowserEnvironment

logger = logging.getLogger(__name__)

class PermissionState(str, enum.Enum):
    UNSUPPORTED = "unsupported"
    DEFAULT = "default"
    GRANTED = "granted"
    DENIED = "denied"

TERMINAL_STATES = {PermissionState.UNSUPPORTED, PermissionState.DENIED}

class PermissionStateMachine:
    """
    unsupported -> default -> {granted, denied}

    `unsupported` e `denied` são finais: só uma mudança nas configurações
    do navegador (fora do app) tira o usuário de `denied`.
    """

    def __init__(self, state: PermissionState = PermissionState.DEFAULT):
        self._state = PermissionState(state)

    @classmethod
    def from_environment(cls, env: BrowserEnvironment) -> "PermissionStateMachine":
        if not env.supports_push():
            return cls(PermissionState.UNSUPPORTED)
        return cls(PermissionState(env.notification_permission()))

    @property
    def state(self) -> PermissionState:
        return self._state

    @property
    def is_terminal(self) -> bool:
        return self._state in TERMINAL_STATES

    @property
    def is_granted(self) -> bool:
        return self._state is PermissionState.GRANTED

    def apply(self, decision: str) -> PermissionState:
        """Aplica a resposta do usuário ao prompt. Fora de `default` não muda nada."""
        if self._state in TERMINAL_STATES or self._state is PermissionState.GRANTED:
            return self._state
        if decision == PermissionState.GRANTED.value:
            self._state = PermissionState.GRANTED
        elif decision == PermissionState.DENIED.value:
            self._state = PermissionState.DENIED
        # Prompt fechado sem resposta: continua em default
        return self._state

    async def request(self, prompt: Callable[[], Awaitable[str]]) -> PermissionState:
        """Só abre o prompt a partir de `default`."""
        if self._state is not PermissionState.DEFAULT:
            logger.info(f"Permissão já resolvida: {self._state.value}")
            return self._state
        decision = await prompt()
        state = self.apply(decision)
        logger.info(f"🔔 Permissão de notificação: {state.value}")
        return state
