"""Tests for the client-side subscription manager."""
from __future__ import annotations

import asyncio
import json

import httpx

from app.client.permissions import PermissionState
from app.client.subscription_manager import STORAGE_KEY, ClientSubscriptionManager
from conftest import FakeBrowser, RecordingServer, descriptor_dict


def run_enable(browser: FakeBrowser, server: RecordingServer, **kwargs):
    async def go():
        async with server.client() as http:
            manager = ClientSubscriptionManager(browser, "alice", http, **kwargs)
            return manager, await manager.enable()
    return asyncio.run(go())


class TestEnable:
    def test_full_flow(self, browser: FakeBrowser, server: RecordingServer) -> None:
        manager, result = run_enable(browser, server)
        assert result == descriptor_dict("browser")
        assert manager.permission.state is PermissionState.GRANTED
        assert browser.registration.script_url == "/sw.js"
        assert browser.push_manager.subscribe_args == {
            "user_visible_only": True,
            "application_server_key": "server-public-key",
        }
        assert json.loads(browser.storage.items[STORAGE_KEY]) == descriptor_dict("browser")

        register = server.requests[-1]
        assert (register.method, register.url.path) == ("POST", "/api/stream/register-push-subscription")
        assert json.loads(register.content) == {"userId": "alice", "subscription": descriptor_dict("browser")}

    def test_configured_key_skips_lookup(self, browser: FakeBrowser, server: RecordingServer) -> None:
        run_enable(browser, server, vapid_public_key="local-key")
        assert browser.push_manager.subscribe_args["application_server_key"] == "local-key"
        assert ("GET", "/api/stream/vapid-public-key") not in server.paths()

    def test_unsupported_browser(self, server: RecordingServer) -> None:
        browser = FakeBrowser(supported=False)
        _, result = run_enable(browser, server)
        assert result is None
        assert browser.prompts == 0
        assert server.requests == []

    def test_denied_permission(self, server: RecordingServer) -> None:
        browser = FakeBrowser(decision="denied")
        manager, result = run_enable(browser, server)
        assert result is None
        assert manager.permission.state is PermissionState.DENIED
        assert browser.registration is None

    def test_already_denied_never_prompts(self, server: RecordingServer) -> None:
        browser = FakeBrowser(permission="denied")
        run_enable(browser, server)
        assert browser.prompts == 0

    def test_server_rejection_keeps_local_copy(self, browser: FakeBrowser, server: RecordingServer) -> None:
        server.status = 400
        _, result = run_enable(browser, server, vapid_public_key="k")
        assert result is not None
        assert STORAGE_KEY in browser.storage.items

    def test_network_error_keeps_local_copy(self, browser: FakeBrowser, server: RecordingServer) -> None:
        server.error = httpx.ConnectError("offline")
        _, result = run_enable(browser, server, vapid_public_key="k")
        assert result is not None
        assert STORAGE_KEY in browser.storage.items


    def test_key_lookup_network_error_returns_none(self, browser: FakeBrowser, server: RecordingServer) -> None:
        server.error = httpx.ConnectError("offline")
        _, result = run_enable(browser, server)
        assert result is None
        assert STORAGE_KEY not in browser.storage.items
        assert browser.push_manager.subscription is None

    def test_key_lookup_without_public_key_returns_none(self, browser: FakeBrowser) -> None:
        async def go():
            transport = httpx.MockTransport(lambda request: httpx.Response(200, json={}))
            async with httpx.AsyncClient(transport=transport, base_url="http://testserver") as http:
                return await ClientSubscriptionManager(browser, "alice", http).enable()

        assert asyncio.run(go()) is None
        assert STORAGE_KEY not in browser.storage.items

    def test_agent_registration_failure_returns_none(self, browser: FakeBrowser, server: RecordingServer) -> None:
        async def failing_register(script_url: str):
            raise RuntimeError("SecurityError: insecure origin")

        browser.register_service_worker = failing_register
        _, result = run_enable(browser, server, vapid_public_key="k")
        assert result is None
        assert STORAGE_KEY not in browser.storage.items
        assert server.requests == []


class TestDisable:
    def test_unsubscribes_clears_and_deregisters(self, browser: FakeBrowser, server: RecordingServer) -> None:
        async def go():
            async with server.client() as http:
                manager = ClientSubscriptionManager(browser, "alice", http, vapid_public_key="k")
                await manager.enable()
                await manager.disable()
        asyncio.run(go())

        assert browser.push_manager.subscription.unsubscribed
        assert STORAGE_KEY not in browser.storage.items
        delete = server.requests[-1]
        assert (delete.method, delete.url.path) == ("DELETE", "/api/stream/register-push-subscription")
        assert json.loads(delete.content) == {"userId": "alice"}

    def test_deregistration_failure_is_swallowed(self, browser: FakeBrowser, server: RecordingServer) -> None:
        browser.storage.set_item(STORAGE_KEY, "{}")
        server.error = httpx.ConnectError("offline")

        async def go():
            async with server.client() as http:
                await ClientSubscriptionManager(browser, "alice", http).disable()
        asyncio.run(go())
        assert STORAGE_KEY not in browser.storage.items


class TestStoredSubscription:
    def test_reads_local_copy(self, browser: FakeBrowser) -> None:
        browser.storage.set_item(STORAGE_KEY, json.dumps({"endpoint": "x"}))
        manager = ClientSubscriptionManager(browser, "alice", http=None)
        assert manager.stored_subscription() == {"endpoint": "x"}

    def test_corrupt_copy_is_none(self, browser: FakeBrowser) -> None:
        browser.storage.set_item(STORAGE_KEY, "{oops")
        assert ClientSubscriptionManager(browser, "alice", http=None).stored_subscription() is None

    def test_absent_is_none(self, browser: FakeBrowser) -> None:
        assert ClientSubscriptionManager(browser, "alice", http=None).stored_subscription() is None


class TestAgainstServer:
    def test_enable_registers_in_server_registry(self, browser: FakeBrowser, api_client, registry, push_service) -> None:
        from app.main import app

        async def go():
            transport = httpx.ASGITransport(app=app)
            async with httpx.AsyncClient(transport=transport, base_url="http://testserver") as http:
                manager = ClientSubscriptionManager(browser, "alice", http)
                await manager.enable()
                assert registry.get("alice").endpoint == "https://push.example.com/browser"
                await manager.disable()
        asyncio.run(go())

        assert registry.get("alice") is None
        assert browser.push_manager.subscribe_args["application_server_key"] == "test-public-key"
