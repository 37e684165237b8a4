from fastapi import Depends, Request

from app.services.push import PushDispatcher
from app.services.registry import SubscriptionStore
from app.services.webhook import WebhookHandler

# Os serviços são montados no lifespan (app.state) e podem ser
# substituídos nos testes via app.dependency_overrides.

def get_registry(request: Request) -> SubscriptionStore:
    return request.app.state.registry

def get_dispatcher(request: Request) -> PushDispatcher:
    return request.app.state.dispatcher

def get_webhook_handler(
    registry: SubscriptionStore = Depends(get_registry),
    dispatcher: PushDispatcher = Depends(get_dispatcher),
) -> WebhookHandler:
    return WebhookHandler(registry, dispatcher)
