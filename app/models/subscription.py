from sqlalchemy import Column, String, DateTime, Text
from sqlalchemy.sql import func
from app.db.base import Base

class PushSubscription(Base):
    __tablename__ = "push_subscriptions"

    # Uma inscrição por usuário (a última registrada vence)
    user_id = Column(String(255), primary_key=True)

    endpoint = Column(Text, nullable=False)
    # Descritor completo, do jeito que o navegador enviou
    descriptor_json = Column(Text, nullable=False)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())
