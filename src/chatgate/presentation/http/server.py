"""Admin HTTP server and inbound message endpoint."""

import json
import time
from collections.abc import Awaitable, Callable
from typing import TypeGuard

import structlog
from aiohttp import web
from pydantic import ValidationError

from chatgate.application.services.group_service import GroupService
from chatgate.application.services.routing_config import (
    DuplicateWebhookError,
    RoutingConfig,
    WebhookNotFoundError,
)
from chatgate.application.services.schedule_evaluator import ScheduleEvaluator
from chatgate.config.models import ServerConfig, WebhookConfig
from chatgate.domain.entities.message import Message
from chatgate.infrastructure.transport.bridge import HttpBridgeTransport, TransportError
from chatgate.presentation.http.schedules import ScheduleHandlers

Handler = Callable[[web.Request], Awaitable[web.StreamResponse]]


class HTTPServer:
    """HTTP server for the admin API and bridge callbacks.

    This server provides endpoints for:
    - POST /api/v1/messages: Inbound messages pushed by the bridge
    - GET /healthz: Kubernetes liveness probe
    - /api/...: Groups, webhooks, trigger words and connection status
    - /api/schedules, /api/server-time: Schedule management, when a
      schedule evaluator is configured

    Args:
        config: Server configuration containing host and port.
        transport: Bridge transport that receives inbound messages.
        groups: Group allow-list.
        routing: Trigger word and webhook configuration.
        evaluator: Schedule evaluator, or None when scheduling is disabled.
        logger: Structured logger for logging.
    """

    def __init__(
        self,
        config: ServerConfig,
        transport: HttpBridgeTransport,
        groups: GroupService,
        routing: RoutingConfig,
        evaluator: ScheduleEvaluator | None,
        logger: structlog.stdlib.BoundLogger,
    ) -> None:
        self.config = config
        self._transport = transport
        self._groups = groups
        self._routing = routing
        self._evaluator = evaluator
        self._logger = logger
        self._app: web.Application | None = None
        self._runner: web.AppRunner | None = None
        self._site: web.TCPSite | None = None

    @property
    def is_running(self) -> bool:
        """Return True if the server is running."""
        return self._site is not None

    @property
    def actual_port(self) -> int:
        """Return the port the server is listening on.

        Useful when port 0 is configured to get a random port.

        Raises:
            RuntimeError: If the server is not running.
        """
        if self._site is None:
            raise RuntimeError("Server is not running")
        server = getattr(self._site, "_server", None)
        if server is None:
            raise RuntimeError("Server is not running")
        sockets = getattr(server, "sockets", None)
        if sockets:
            return sockets[0].getsockname()[1]
        raise RuntimeError("No sockets available")

    def create_app(self) -> web.Application:
        """Create and return the aiohttp Application.

        This method is exposed for testing purposes.
        """
        app = web.Application(middlewares=[self._log_requests])
        app.router.add_get("/healthz", self._handle_health_check)
        app.router.add_get("/api/health", self._handle_api_health)
        app.router.add_post("/api/v1/messages", self._handle_inbound_message)

        app.router.add_get("/api/status", self._handle_status)
        app.router.add_get("/api/auth/qr", self._handle_qr_code)
        app.router.add_get("/api/groups", self._handle_get_groups)
        app.router.add_get("/api/config/allowed-groups", self._handle_get_allowed_groups)
        app.router.add_post("/api/config/allowed-groups", self._handle_update_allowed_groups)
        app.router.add_get("/api/config/trigger-words", self._handle_get_trigger_words)
        app.router.add_post("/api/config/trigger-words", self._handle_update_trigger_words)
        app.router.add_get("/api/webhooks", self._handle_get_webhooks)
        app.router.add_post("/api/webhooks", self._handle_add_webhook)
        app.router.add_delete("/api/webhooks", self._handle_delete_webhook)

        if self._evaluator is not None:
            ScheduleHandlers(self._evaluator, self._logger).register(app)
        return app

    async def start(self) -> None:
        """Start the HTTP server."""
        self._app = self.create_app()
        self._runner = web.AppRunner(self._app)
        await self._runner.setup()
        self._site = web.TCPSite(self._runner, self.config.host, self.config.port)
        await self._site.start()
        self._logger.info(
            "HTTP server started",
            host=self.config.host,
            port=self.actual_port,
        )

    async def stop(self) -> None:
        """Stop the HTTP server."""
        if self._runner is not None:
            await self._runner.cleanup()
            self._runner = None
            self._site = None
            self._app = None
            self._logger.info("HTTP server stopped")

    @web.middleware
    async def _log_requests(self, request: web.Request, handler: Handler) -> web.StreamResponse:
        started = time.monotonic()
        response = await handler(request)
        self._logger.debug(
            "HTTP request",
            method=request.method,
            path=request.path,
            status=response.status,
            duration_ms=round((time.monotonic() - started) * 1000, 1),
        )
        return response

    async def _handle_health_check(self, request: web.Request) -> web.Response:
        return web.json_response({"status": "ok"})

    async def _handle_api_health(self, request: web.Request) -> web.Response:
        return web.json_response({"status": "healthy"})

    async def _handle_inbound_message(self, request: web.Request) -> web.Response:
        """Handle POST /api/v1/messages requests.

        Returns:
            202 with the message id once the message is handed off, 400 for
            malformed bodies and 503 while no handler is registered.
        """
        body = await _read_json(request)
        if not isinstance(body, dict):
            return _error("Invalid JSON", 400)

        try:
            message = Message.model_validate(body)
        except ValidationError as e:
            return _error(f"Invalid message: {e}", 400)

        if not self._transport.dispatch(message):
            return _error("Message handler not ready", 503)

        self._logger.debug(
            "Message received", message_id=message.id, chat_id=message.chat_id
        )
        return web.json_response({"message_id": message.id}, status=202)

    async def _handle_status(self, request: web.Request) -> web.Response:
        status = await self._transport.get_auth_status()
        return web.json_response(status.model_dump())

    async def _handle_qr_code(self, request: web.Request) -> web.Response:
        status = await self._transport.get_auth_status()
        if status.is_authenticated:
            return web.json_response(
                {"authenticated": True, "message": "Already authenticated"}
            )
        return web.json_response({"qr_code": status.qr_code})

    async def _handle_get_groups(self, request: web.Request) -> web.Response:
        """Handle GET /api/groups requests.

        Falls back to the configured allow-list when the bridge cannot list
        groups, using the chat id as its name.
        """
        try:
            groups = await self._transport.get_groups()
        except TransportError as e:
            self._logger.debug(
                "Bridge unavailable, returning allowed groups from config",
                error=str(e),
            )
            return web.json_response(
                [
                    {"jid": jid, "name": jid, "is_allowed": True}
                    for jid in self._groups.get_allowed_groups()
                ]
            )

        return web.json_response(
            [
                group.model_copy(
                    update={"is_allowed": self._groups.is_allowed(group.jid)}
                ).model_dump()
                for group in groups
            ]
        )

    async def _handle_get_allowed_groups(self, request: web.Request) -> web.Response:
        return web.json_response({"allowed_groups": self._groups.get_allowed_groups()})

    async def _handle_update_allowed_groups(self, request: web.Request) -> web.Response:
        body = await _read_json(request)
        groups = body.get("allowed_groups") if isinstance(body, dict) else None
        if not _is_string_list(groups):
            return _error("Invalid request body", 400)

        try:
            await self._groups.update(groups)
        except OSError as e:
            self._logger.error("Failed to update allowed groups", error=str(e))
            return _error("Failed to save configuration", 500)

        return web.json_response(
            {"success": True, "message": "Allowed groups updated successfully"}
        )

    async def _handle_get_trigger_words(self, request: web.Request) -> web.Response:
        return web.json_response(
            {"trigger_words": list(self._routing.snapshot.trigger_words)}
        )

    async def _handle_update_trigger_words(self, request: web.Request) -> web.Response:
        body = await _read_json(request)
        words = body.get("trigger_words") if isinstance(body, dict) else None
        if not _is_string_list(words):
            return _error("Invalid request body", 400)

        try:
            await self._routing.update_trigger_words(words)
        except OSError as e:
            self._logger.error("Failed to update trigger words", error=str(e))
            return _error("Failed to save configuration", 500)

        return web.json_response(
            {
                "success": True,
                "message": "Trigger words updated successfully",
                "trigger_words": list(self._routing.snapshot.trigger_words),
            }
        )

    async def _handle_get_webhooks(self, request: web.Request) -> web.Response:
        return web.json_response(
            {
                "webhooks": [
                    rule.model_dump(exclude_none=True)
                    for rule in self._routing.snapshot.webhooks
                ]
            }
        )

    async def _handle_add_webhook(self, request: web.Request) -> web.Response:
        body = await _read_json(request)
        if not isinstance(body, dict):
            return _error("Invalid request body", 400)

        try:
            webhook = WebhookConfig.model_validate(body)
        except ValidationError:
            return _error("sub_trigger and url are required", 400)
        if not webhook.sub_trigger or not webhook.url:
            return _error("sub_trigger and url are required", 400)

        try:
            await self._routing.add_webhook(webhook)
        except DuplicateWebhookError:
            return _error("sub_trigger already exists", 409)
        except OSError as e:
            self._logger.error("Failed to save webhooks", error=str(e))
            return _error("Failed to save configuration", 500)

        self._logger.debug(
            "Webhook added", sub_trigger=webhook.sub_trigger, url=webhook.url
        )
        return web.json_response(
            {
                "success": True,
                "message": "Webhook added successfully",
                "webhook": webhook.model_dump(exclude_none=True),
            }
        )

    async def _handle_delete_webhook(self, request: web.Request) -> web.Response:
        sub_trigger = request.query.get("sub_trigger", "")
        if not sub_trigger:
            return _error("sub_trigger query parameter is required", 400)

        try:
            await self._routing.remove_webhook(sub_trigger)
        except WebhookNotFoundError:
            return _error("Webhook not found", 404)
        except OSError as e:
            self._logger.error("Failed to save webhooks", error=str(e))
            return _error("Failed to save configuration", 500)

        self._logger.debug("Webhook deleted", sub_trigger=sub_trigger)
        return web.json_response(
            {"success": True, "message": "Webhook deleted successfully"}
        )


async def _read_json(request: web.Request) -> object:
    try:
        return await request.json()
    except json.JSONDecodeError:
        return None


def _is_string_list(value: object) -> TypeGuard[list[str]]:
    return isinstance(value, list) and all(isinstance(item, str) for item in value)


def _error(message: str, status: int) -> web.Response:
    return web.json_response({"error": message}, status=status)
