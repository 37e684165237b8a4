import json
import logging
import threading
from typing import Dict, Optional, Protocol

from app.models.subscription import PushSubscription
from app.schemas.subscription import PushSubscriptionDescriptor

logger = logging.getLogger(__name__)

class SubscriptionStore(Protocol):
    """
    Registro userId -> descritor de inscrição.
    Ausência é um resultado normal (None), nunca uma exceção.
    """

    def put(self, user_id: str, descriptor: PushSubscriptionDescriptor) -> None: ...

    def get(self, user_id: str) -> Optional[PushSubscriptionDescriptor]: ...

    def delete(self, user_id: str) -> None: ...

class InMemorySubscriptionStore:
    """Registro volátil: some quando o processo reinicia."""

    def __init__(self):
        self._lock = threading.Lock()
        self._entries: Dict[str, PushSubscriptionDescriptor] = {}

    def put(self, user_id: str, descriptor: PushSubscriptionDescriptor) -> None:
        with self._lock:
            self._entries[user_id] = descriptor
        logger.info(f"💾 Inscrição armazenada para o usuário {user_id}")

    def get(self, user_id: str) -> Optional[PushSubscriptionDescriptor]:
        with self._lock:
            return self._entries.get(user_id)

    def delete(self, user_id: str) -> None:
        with self._lock:
            removed = self._entries.pop(user_id, None)
        if removed is not None:
            logger.info(f"🗑️ Inscrição removida do usuário {user_id}")

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

class SqlSubscriptionStore:
    """Registro persistente em banco relacional (uma transação por operação)."""

    def __init__(self, session_factory):
        self._session_factory = session_factory

    def put(self, user_id: str, descriptor: PushSubscriptionDescriptor) -> None:
        db = self._session_factory()
        try:
            row = db.get(PushSubscription, user_id)
            if row is None:
                row = PushSubscription(user_id=user_id)
                db.add(row)
            row.endpoint = descriptor.endpoint
            row.descriptor_json = descriptor.model_dump_json()
            db.commit()
        except Exception:
            db.rollback()
            raise
        finally:
            db.close()
        logger.info(f"💾 Inscrição armazenada para o usuário {user_id}")

    def get(self, user_id: str) -> Optional[PushSubscriptionDescriptor]:
        db = self._session_factory()
        try:
            row = db.get(PushSubscription, user_id)
            if row is None:
                return None
            return PushSubscriptionDescriptor.model_validate(json.loads(row.descriptor_json))
        finally:
            db.close()

    def delete(self, user_id: str) -> None:
        db = self._session_factory()
        try:
            row = db.get(PushSubscription, user_id)
            if row is None:
                return
            db.delete(row)
            db.commit()
        except Exception:
            db.rollback()
            raise
        finally:
            db.close()
        logger.info(f"🗑️ Inscrição removida do usuário {user_id}")

def build_store(backend: str, database_uri: str = "") -> SubscriptionStore:
    if backend == "sql":
        # Importação tardia: só precisa do banco quem usa o backend SQL
        from app.db.base import Base
        from app.db.session import build_session_factory

        engine, session_factory = build_session_factory(database_uri)
        Base.metadata.create_all(bind=engine)
        return SqlSubscriptionStore(session_factory)
    return InMemorySubscriptionStore()
