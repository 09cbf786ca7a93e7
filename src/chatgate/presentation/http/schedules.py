"""Schedule management endpoints."""

import json

import structlog
from aiohttp import web
from pydantic import ValidationError

from chatgate.application.services.schedule_evaluator import ScheduleEvaluator
from chatgate.domain.entities.schedule import Schedule, ScheduleInput
from chatgate.domain.repositories.schedule_repository import ScheduleNotFoundError

DEFAULT_EXECUTIONS_LIMIT = 50


def schedule_to_dict(schedule: Schedule) -> dict[str, object]:
    data = schedule.model_dump(mode="json")
    data["state"] = schedule.state.value
    return data


class ScheduleHandlers:
    """Routes for schedule CRUD, execution history and server time."""

    def __init__(
        self,
        evaluator: ScheduleEvaluator,
        logger: structlog.stdlib.BoundLogger,
    ) -> None:
        self._evaluator = evaluator
        self._logger = logger

    def register(self, app: web.Application) -> None:
        app.router.add_get("/api/schedules", self.list_schedules)
        app.router.add_post("/api/schedules", self.create_schedule)
        app.router.add_get("/api/schedules/{id}", self.get_schedule)
        app.router.add_put("/api/schedules/{id}", self.update_schedule)
        app.router.add_delete("/api/schedules/{id}", self.delete_schedule)
        app.router.add_get("/api/schedules/{id}/executions", self.list_executions)
        app.router.add_get("/api/server-time", self.server_time)

    async def list_schedules(self, request: web.Request) -> web.Response:
        schedules = await self._evaluator.get_all_schedules()
        return web.json_response([schedule_to_dict(schedule) for schedule in schedules])

    async def get_schedule(self, request: web.Request) -> web.Response:
        try:
            schedule = await self._evaluator.get_schedule(request.match_info["id"])
        except ScheduleNotFoundError as e:
            return _error(str(e), 404)
        return web.json_response(schedule_to_dict(schedule))

    async def create_schedule(self, request: web.Request) -> web.Response:
        """Handle POST /api/schedules.

        Returns:
            201 with the stored schedule, or 400 when the body is not a valid
            schedule for its kind.
        """
        data = await _parse_input(request)
        if isinstance(data, web.Response):
            return data

        schedule = await self._evaluator.create_schedule(data)
        return web.json_response(schedule_to_dict(schedule), status=201)

    async def update_schedule(self, request: web.Request) -> web.Response:
        data = await _parse_input(request)
        if isinstance(data, web.Response):
            return data

        try:
            schedule = await self._evaluator.update_schedule(request.match_info["id"], data)
        except ScheduleNotFoundError as e:
            return _error(str(e), 404)
        return web.json_response(schedule_to_dict(schedule))

    async def delete_schedule(self, request: web.Request) -> web.Response:
        try:
            await self._evaluator.delete_schedule(request.match_info["id"])
        except ScheduleNotFoundError as e:
            return _error(str(e), 404)
        return web.Response(status=204)

    async def list_executions(self, request: web.Request) -> web.Response:
        raw_limit = request.query.get("limit", "")
        try:
            limit = int(raw_limit) if raw_limit else DEFAULT_EXECUTIONS_LIMIT
        except ValueError:
            return _error(f"Invalid limit: {raw_limit}", 400)
        if limit <= 0:
            return _error(f"Invalid limit: {raw_limit}", 400)

        try:
            executions = await self._evaluator.get_schedule_executions(
                request.match_info["id"], limit
            )
        except ScheduleNotFoundError as e:
            return _error(str(e), 404)
        return web.json_response(
            [execution.model_dump(mode="json") for execution in executions]
        )

    async def server_time(self, request: web.Request) -> web.Response:
        return web.json_response(self._evaluator.get_server_time().model_dump(mode="json"))


async def _parse_input(request: web.Request) -> ScheduleInput | web.Response:
    try:
        body = await request.json()
    except json.JSONDecodeError:
        return _error("Invalid request body", 400)

    try:
        return ScheduleInput.model_validate(body)
    except ValidationError as e:
        return web.json_response(
            {
                "error": "Invalid schedule",
                "details": e.errors(
                    include_url=False, include_context=False, include_input=False
                ),
            },
            status=400,
        )


def _error(message: str, status: int) -> web.Response:
    return web.json_response({"error": message}, status=status)
