from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

def build_session_factory(database_uri: str):
    """Cria o motor de conexão e a fábrica de sessões do registro SQL."""
    connect_args = {}
    if database_uri.startswith("sqlite"):
        # SQLite + threadpool do FastAPI
        connect_args["check_same_thread"] = False

    engine = create_engine(
        database_uri,
        pool_pre_ping=True, # Verifica se a conexão está viva antes de usar
        echo=False,
        connect_args=connect_args,
    )
    return engine, sessionmaker(autocommit=False, autoflush=False, bind=engine)
