"""Shared fixtures for the push relay tests."""
from __future__ import annotations

import json
import os
from types import SimpleNamespace
from typing import Any

import httpx
import pytest

# Settings are loaded at import time and require the VAPID keys.
os.environ.setdefault("VAPID_PUBLIC_KEY", "test-public-key")
os.environ.setdefault("VAPID_PRIVATE_KEY", "test-private-key")

from pywebpush import WebPushException  # noqa: E402

from app.schemas.subscription import PushSubscriptionDescriptor  # noqa: E402
from app.services.push import PushDispatcher  # noqa: E402
from app.services.registry import InMemorySubscriptionStore  # noqa: E402


def descriptor_dict(name: str) -> dict[str, Any]:
    return {
        "endpoint": f"https://push.example.com/{name}",
        "keys": {"p256dh": f"p256dh-{name}", "auth": f"auth-{name}"},
    }


def descriptor(name: str) -> PushSubscriptionDescriptor:
    return PushSubscriptionDescriptor.model_validate(descriptor_dict(name))


class FakePushService:
    """Stands in for pywebpush.webpush; outcomes are queued per endpoint."""

    def __init__(self) -> None:
        self.calls: list[dict[str, Any]] = []
        self.outcomes: dict[str, list[Any]] = {}

    def fail(self, name: str, *outcomes: Any) -> None:
        """Queue failures (HTTP status ints or exceptions) for an endpoint."""
        self.outcomes.setdefault(f"https://push.example.com/{name}", []).extend(outcomes)

    def endpoints(self) -> list[str]:
        return [c["endpoint"] for c in self.calls]

    def __call__(self, subscription_info: dict, data: str, vapid_private_key: str, vapid_claims: dict, **kwargs: Any) -> Any:
        endpoint = subscription_info["endpoint"]
        self.calls.append({
            "endpoint": endpoint,
            "payload": json.loads(data),
            "claims": dict(vapid_claims),
            "kwargs": kwargs,
        })
        queue = self.outcomes.get(endpoint)
        if queue:
            outcome = queue.pop(0)
            if isinstance(outcome, Exception):
                raise outcome
            raise WebPushException(
                f"Push failed: {outcome}",
                response=SimpleNamespace(status_code=outcome, text="provider error"),
            )
        return SimpleNamespace(status_code=201)


@pytest.fixture()
def push_service(monkeypatch: pytest.MonkeyPatch) -> FakePushService:
    fake = FakePushService()
    monkeypatch.setattr("app.services.push.webpush", fake)
    return fake


@pytest.fixture()
def sleeps() -> list[float]:
    return []


@pytest.fixture()
def dispatcher(push_service: FakePushService, sleeps: list[float]) -> PushDispatcher:
    return PushDispatcher(
        vapid_private_key="test-private-key",
        vapid_claims_email="admin@example.com",
        max_retries=2,
        backoff_seconds=0.5,
        sleep=sleeps.append,
    )


@pytest.fixture()
def registry() -> InMemorySubscriptionStore:
    return InMemorySubscriptionStore()


@pytest.fixture()
def api_client(registry: InMemorySubscriptionStore, dispatcher: PushDispatcher):
    """TestClient with the registry and dispatcher swapped for test doubles."""
    from fastapi.testclient import TestClient

    from app.api import deps
    from app.main import app

    app.dependency_overrides[deps.get_registry] = lambda: registry
    app.dependency_overrides[deps.get_dispatcher] = lambda: dispatcher
    with TestClient(app) as client:
        yield client
    app.dependency_overrides.clear()


# ── Browser doubles ──────────────────────────────────────────────────────────


class FakeStorage:
    def __init__(self) -> None:
        self.items: dict[str, str] = {}

    def get_item(self, key: str) -> str | None:
        return self.items.get(key)

    def set_item(self, key: str, value: str) -> None:
        self.items[key] = value

    def remove_item(self, key: str) -> None:
        self.items.pop(key, None)


class FakeNotification:
    def __init__(self, title: str, options: dict[str, Any]) -> None:
        self.title = title
        self.options = options
        self.onclick = None
        self.closed = False

    def close(self) -> None:
        self.closed = True


class FakeSubscription:
    def __init__(self, data: dict[str, Any]) -> None:
        self.data = data
        self.unsubscribed = False

    def to_json(self) -> dict[str, Any]:
        return self.data

    async def unsubscribe(self) -> bool:
        self.unsubscribed = True
        return True


class FakePushManager:
    def __init__(self) -> None:
        self.subscription: FakeSubscription | None = None
        self.subscribe_args: dict[str, Any] | None = None

    async def subscribe(self, user_visible_only: bool, application_server_key: str) -> FakeSubscription:
        self.subscribe_args = {
            "user_visible_only": user_visible_only,
            "application_server_key": application_server_key,
        }
        self.subscription = FakeSubscription(descriptor_dict("browser"))
        return self.subscription

    async def get_subscription(self) -> FakeSubscription | None:
        return self.subscription


class FakeBrowser:
    def __init__(self, supported: bool = True, permission: str = "default", decision: str = "granted", focused: bool = True) -> None:
        self.supported = supported
        self.permission = permission
        self.decision = decision
        self.focused = focused
        self.prompts = 0
        self.window_focused = 0
        self.storage = FakeStorage()
        self.notifications: list[FakeNotification] = []
        self.registration: SimpleNamespace | None = None
        self.push_manager = FakePushManager()

    def supports_push(self) -> bool:
        return self.supported

    def notification_permission(self) -> str:
        return self.permission

    async def request_notification_permission(self) -> str:
        self.prompts += 1
        self.permission = self.decision
        return self.decision

    async def register_service_worker(self, script_url: str) -> SimpleNamespace:
        self.registration = SimpleNamespace(script_url=script_url, push_manager=self.push_manager)
        return self.registration

    async def get_service_worker_registration(self) -> SimpleNamespace | None:
        return self.registration

    def has_focus(self) -> bool:
        return self.focused

    def focus_window(self) -> None:
        self.window_focused += 1

    def show_notification(self, title: str, options: dict[str, Any]) -> FakeNotification:
        notification = FakeNotification(title, options)
        self.notifications.append(notification)
        return notification


@pytest.fixture()
def browser() -> FakeBrowser:
    return FakeBrowser()


class RecordingServer:
    """httpx.MockTransport handler that records client requests."""

    def __init__(self) -> None:
        self.requests: list[httpx.Request] = []
        self.status = 200
        self.error: Exception | None = None

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.error is not None:
            raise self.error
        if request.url.path.endswith("/vapid-public-key"):
            return httpx.Response(200, json={"publicKey": "server-public-key"})
        return httpx.Response(self.status, json={"success": self.status < 400})

    def paths(self) -> list[tuple[str, str]]:
        return [(r.method, r.url.path) for r in self.requests]

    def client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(transport=httpx.MockTransport(self), base_url="http://testserver")


@pytest.fixture()
def server() -> RecordingServer:
    return RecordingServer()
