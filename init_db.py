# init_db.py
from app.db.base import Base
from app.db.session import build_session_factory

# IMPORTANTE: importar os modelos para o SQLAlchemy registrar as tabelas
from app.models.subscription import PushSubscription  # noqa: F401


def init_db(database_uri: str):
    print("Conectando ao banco de dados...")
    engine, _ = build_session_factory(database_uri)

    print("Criando tabelas...")
    Base.metadata.create_all(bind=engine)

    print("Tabela push_subscriptions pronta.")
    return engine

if __name__ == "__main__":
    from app.core.config import settings
    init_db(settings.SQLALCHEMY_DATABASE_URI)
