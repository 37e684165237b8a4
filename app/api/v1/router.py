from fastapi import APIRouter
from app.api.v1.endpoints import push, subscriptions, webhook

api_router = APIRouter()

api_router.include_router(subscriptions.router, tags=["subscriptions"])
api_router.include_router(push.router, tags=["push"])
api_router.include_router(webhook.router, tags=["webhook"])
