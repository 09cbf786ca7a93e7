"""Tests for HTTPServer."""

from unittest.mock import AsyncMock, MagicMock

import aiohttp
import pytest
import structlog
from aiohttp.test_utils import TestClient

from chatgate.application.services.group_service import GroupService
from chatgate.application.services.routing_config import RoutingConfig
from chatgate.config.models import ServerConfig, WebhookConfig
from chatgate.domain.entities.message import AuthStatus, Group, Message
from chatgate.infrastructure.transport.bridge import HttpBridgeTransport, TransportError
from chatgate.presentation.http.server import HTTPServer


@pytest.fixture
def transport() -> MagicMock:
    transport = MagicMock(spec=HttpBridgeTransport)
    transport.dispatch.return_value = True
    transport.get_auth_status.return_value = AuthStatus(is_authenticated=True)
    transport.get_groups.return_value = [
        Group(jid="group-1@g.us", name="Team", participants=4),
        Group(jid="group-2@g.us", name="Family", participants=3),
    ]
    return transport


@pytest.fixture
def store() -> AsyncMock:
    return AsyncMock()


@pytest.fixture
def logger() -> structlog.stdlib.BoundLogger:
    return structlog.get_logger()


@pytest.fixture
def groups(store: AsyncMock) -> GroupService:
    return GroupService(["group-1@g.us"], store, MagicMock())


@pytest.fixture
def routing(store: AsyncMock) -> RoutingConfig:
    return RoutingConfig(
        ["@bot"],
        [WebhookConfig(sub_trigger="weather", url="http://hooks/weather")],
        store,
        MagicMock(),
    )


@pytest.fixture
def http_server(
    transport: MagicMock,
    groups: GroupService,
    routing: RoutingConfig,
    logger: structlog.stdlib.BoundLogger,
) -> HTTPServer:
    return HTTPServer(
        config=ServerConfig(host="127.0.0.1", port=8080),
        transport=transport,
        groups=groups,
        routing=routing,
        evaluator=None,
        logger=logger,
    )


@pytest.fixture
async def client(http_server: HTTPServer, aiohttp_client) -> TestClient:
    return await aiohttp_client(http_server.create_app())


class TestHealth:
    """Tests for health endpoints."""

    async def test_health_check(self, client: TestClient) -> None:
        response = await client.get("/healthz")

        assert response.status == 200
        assert response.content_type == "application/json"
        assert await response.json() == {"status": "ok"}

    async def test_api_health(self, client: TestClient) -> None:
        response = await client.get("/api/health")

        assert await response.json() == {"status": "healthy"}

    async def test_schedule_routes_absent_without_evaluator(
        self, client: TestClient
    ) -> None:
        response = await client.get("/api/schedules")

        assert response.status == 404


class TestInboundMessages:
    """Tests for POST /api/v1/messages."""

    async def test_message_is_dispatched(
        self, client: TestClient, transport: MagicMock
    ) -> None:
        response = await client.post(
            "/api/v1/messages",
            json={
                "id": "msg-1",
                "chat_id": "group-1@g.us",
                "sender": "alice@s.whatsapp.net",
                "content": "@bot hi",
                "is_reply_to_bot": False,
            },
        )

        assert response.status == 202
        assert await response.json() == {"message_id": "msg-1"}
        (message,) = transport.dispatch.call_args.args
        assert isinstance(message, Message)
        assert message.content == "@bot hi"

    async def test_invalid_json(self, client: TestClient) -> None:
        response = await client.post(
            "/api/v1/messages",
            data="not json",
            headers={"Content-Type": "application/json"},
        )

        assert response.status == 400
        assert await response.json() == {"error": "Invalid JSON"}

    async def test_missing_fields(self, client: TestClient, transport: MagicMock) -> None:
        response = await client.post("/api/v1/messages", json={"id": "msg-1"})

        assert response.status == 400
        assert (await response.json())["error"].startswith("Invalid message")
        transport.dispatch.assert_not_called()

    async def test_handler_not_ready(
        self, client: TestClient, transport: MagicMock
    ) -> None:
        transport.dispatch.return_value = False

        response = await client.post(
            "/api/v1/messages",
            json={"id": "m", "chat_id": "c", "sender": "s", "content": "x"},
        )

        assert response.status == 503


class TestStatus:
    """Tests for connection status endpoints."""

    async def test_status(self, client: TestClient) -> None:
        response = await client.get("/api/status")

        data = await response.json()
        assert data["is_authenticated"] is True

    async def test_qr_when_authenticated(self, client: TestClient) -> None:
        response = await client.get("/api/auth/qr")

        assert await response.json() == {
            "authenticated": True,
            "message": "Already authenticated",
        }

    async def test_qr_when_pairing(
        self, client: TestClient, transport: MagicMock
    ) -> None:
        transport.get_auth_status.return_value = AuthStatus(
            is_authenticated=False, qr_code="QR-DATA"
        )

        response = await client.get("/api/auth/qr")

        assert await response.json() == {"qr_code": "QR-DATA"}


class TestGroups:
    """Tests for group endpoints."""

    async def test_groups_marked_with_allow_list(self, client: TestClient) -> None:
        response = await client.get("/api/groups")

        data = await response.json()
        assert [(g["jid"], g["is_allowed"]) for g in data] == [
            ("group-1@g.us", True),
            ("group-2@g.us", False),
        ]

    async def test_groups_fallback_when_bridge_down(
        self, client: TestClient, transport: MagicMock
    ) -> None:
        transport.get_groups.side_effect = TransportError("unreachable")

        response = await client.get("/api/groups")

        assert await response.json() == [
            {"jid": "group-1@g.us", "name": "group-1@g.us", "is_allowed": True}
        ]

    async def test_get_allowed_groups(self, client: TestClient) -> None:
        response = await client.get("/api/config/allowed-groups")

        assert await response.json() == {"allowed_groups": ["group-1@g.us"]}

    async def test_update_allowed_groups(
        self, client: TestClient, groups: GroupService, store: AsyncMock
    ) -> None:
        response = await client.post(
            "/api/config/allowed-groups",
            json={"allowed_groups": ["group-2@g.us"]},
        )

        assert response.status == 200
        assert (await response.json())["success"] is True
        assert groups.get_allowed_groups() == ["group-2@g.us"]
        store.update_allowed_groups.assert_awaited_once_with(["group-2@g.us"])

    @pytest.mark.parametrize(
        "body", [{"allowed_groups": "group-2@g.us"}, {"allowed_groups": [1]}, {}]
    )
    async def test_update_allowed_groups_rejects_bad_body(
        self, client: TestClient, body: dict[str, object]
    ) -> None:
        response = await client.post("/api/config/allowed-groups", json=body)

        assert response.status == 400

    async def test_update_allowed_groups_save_failure(
        self, client: TestClient, store: AsyncMock
    ) -> None:
        store.update_allowed_groups.side_effect = OSError("read-only")

        response = await client.post(
            "/api/config/allowed-groups", json={"allowed_groups": []}
        )

        assert response.status == 500


class TestTriggerWords:
    """Tests for trigger word endpoints."""

    async def test_get(self, client: TestClient) -> None:
        response = await client.get("/api/config/trigger-words")

        assert await response.json() == {"trigger_words": ["@bot"]}

    async def test_update(self, client: TestClient, routing: RoutingConfig) -> None:
        response = await client.post(
            "/api/config/trigger-words", json={"trigger_words": ["@sasi", "@s"]}
        )

        data = await response.json()
        assert data["trigger_words"] == ["@sasi", "@s"]
        assert routing.snapshot.trigger_words == ("@sasi", "@s")


class TestWebhooks:
    """Tests for webhook endpoints."""

    async def test_list(self, client: TestClient) -> None:
        response = await client.get("/api/webhooks")

        assert await response.json() == {
            "webhooks": [{"sub_trigger": "weather", "url": "http://hooks/weather"}]
        }

    async def test_add(self, client: TestClient, routing: RoutingConfig) -> None:
        response = await client.post(
            "/api/webhooks",
            json={"sub_trigger": "news", "url": "http://hooks/news", "timeout": "2m"},
        )

        assert response.status == 200
        data = await response.json()
        assert data["webhook"] == {
            "sub_trigger": "news",
            "url": "http://hooks/news",
            "timeout": "2m",
        }
        assert [r.sub_trigger for r in routing.snapshot.webhooks] == ["weather", "news"]

    @pytest.mark.parametrize(
        "body", [{"sub_trigger": "news"}, {"sub_trigger": "", "url": "http://x"}]
    )
    async def test_add_requires_fields(
        self, client: TestClient, body: dict[str, str]
    ) -> None:
        response = await client.post("/api/webhooks", json=body)

        assert response.status == 400
        assert await response.json() == {"error": "sub_trigger and url are required"}

    async def test_add_duplicate(self, client: TestClient) -> None:
        response = await client.post(
            "/api/webhooks", json={"sub_trigger": "weather", "url": "http://other"}
        )

        assert response.status == 409

    async def test_delete(self, client: TestClient, routing: RoutingConfig) -> None:
        response = await client.delete("/api/webhooks", params={"sub_trigger": "weather"})

        assert response.status == 200
        assert routing.snapshot.webhooks == ()

    async def test_delete_unknown(self, client: TestClient) -> None:
        response = await client.delete("/api/webhooks", params={"sub_trigger": "nope"})

        assert response.status == 404
        assert await response.json() == {"error": "Webhook not found"}

    async def test_delete_requires_sub_trigger(self, client: TestClient) -> None:
        response = await client.delete("/api/webhooks")

        assert response.status == 400


class TestServerLifecycle:
    """Tests for starting and stopping the server."""

    async def test_start_stop(
        self,
        transport: MagicMock,
        groups: GroupService,
        routing: RoutingConfig,
        logger: structlog.stdlib.BoundLogger,
    ) -> None:
        server = HTTPServer(
            config=ServerConfig(host="127.0.0.1", port=0),
            transport=transport,
            groups=groups,
            routing=routing,
            evaluator=None,
            logger=logger,
        )

        await server.start()
        try:
            assert server.is_running

            async with aiohttp.ClientSession() as session:
                async with session.get(
                    f"http://127.0.0.1:{server.actual_port}/healthz"
                ) as response:
                    assert response.status == 200
        finally:
            await server.stop()

        assert not server.is_running

    def test_actual_port_when_stopped(self, http_server: HTTPServer) -> None:
        with pytest.raises(RuntimeError):
            _ = http_server.actual_port
