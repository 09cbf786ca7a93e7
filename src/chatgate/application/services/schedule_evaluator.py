"""Calendar-driven webhook scheduler."""

import asyncio
from collections.abc import Callable
from datetime import datetime, tzinfo
from zoneinfo import ZoneInfo

from pydantic import BaseModel
from structlog.stdlib import BoundLogger

from chatgate.application.formatting import format_for_chat
from chatgate.domain.entities.schedule import (
    IMAGE_SENT_MARKER,
    TICK_INTERVAL,
    Schedule,
    ScheduleExecution,
    ScheduleInput,
    ScheduleKind,
    new_id,
    utc_now,
)
from chatgate.domain.ports import ChatTransport, WebhookClient
from chatgate.domain.repositories.schedule_repository import ScheduleRepository
from chatgate.infrastructure.background import BackgroundTasks

Clock = Callable[[], datetime]


class SchedulerAlreadyRunningError(RuntimeError):
    """Raised when start() is called on a running evaluator."""


class ServerTimeInfo(BaseModel):
    """The evaluator's wall clock, for clients aligning countdowns."""

    current_time: datetime
    timezone: str
    unix_time: int
    day_of_week: int
    hour: int
    minute: int
    formatted_str: str


class ScheduleEvaluator:
    """Fires due schedules once per minute.

    One check runs immediately on start, then one per ``TICK_INTERVAL`` on
    deadlines computed from the start time so the cadence does not drift.
    Each firing, and each retirement of a one-time schedule, runs as a
    background task; the loop never waits for a webhook.

    Args:
        repository: Schedule store.
        webhook_client: Client used to call schedule webhooks.
        transport: Chat transport results are posted to.
        tasks: Runner for firings and retirements.
        logger: Structured logger.
        timezone_name: IANA zone for calendar matching; process local zone
            if None.
        clock: Returns the current aware time; defaults to UTC now.
    """

    def __init__(
        self,
        repository: ScheduleRepository,
        webhook_client: WebhookClient,
        transport: ChatTransport,
        tasks: BackgroundTasks,
        logger: BoundLogger,
        timezone_name: str | None = None,
        clock: Clock = utc_now,
    ) -> None:
        self._repository = repository
        self._webhook_client = webhook_client
        self._transport = transport
        self._tasks = tasks
        self._logger = logger
        self._zone: tzinfo | None = ZoneInfo(timezone_name) if timezone_name else None
        self._clock = clock
        self._task: asyncio.Task[None] | None = None
        self._stop_event: asyncio.Event | None = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def now(self) -> datetime:
        """Return the current time in the evaluator's zone."""
        return self._clock().astimezone(self._zone)

    async def start(self) -> None:
        """Start the evaluation loop.

        Raises:
            SchedulerAlreadyRunningError: If the loop is already running.
        """
        if self.running:
            raise SchedulerAlreadyRunningError("scheduler already running")

        self._logger.info("Starting scheduler", timezone=self.now().tzname())
        self._stop_event = asyncio.Event()
        self._task = asyncio.create_task(self._run(self._stop_event), name="schedule-evaluator")

    async def stop(self) -> None:
        """Stop the loop and wait for it to exit. No-op when stopped.

        Firings already dispatched are left to the background task runner.
        """
        if self._task is None or self._stop_event is None:
            return

        self._logger.info("Stopping scheduler")
        self._stop_event.set()
        task, self._task = self._task, None
        self._stop_event = None
        await task
        self._logger.info("Scheduler stopped")

    async def _run(self, stop_event: asyncio.Event) -> None:
        loop = asyncio.get_running_loop()
        interval = TICK_INTERVAL.total_seconds()
        started = loop.time()
        ticks = 0

        while True:
            try:
                await self.check_schedules()
            except Exception as e:
                self._logger.error("Schedule check failed", error=str(e))

            # Next deadline is start + n * interval; skip any that were missed.
            ticks = max(ticks + 1, int((loop.time() - started) // interval) + 1)
            delay = started + ticks * interval - loop.time()
            try:
                await asyncio.wait_for(stop_event.wait(), timeout=delay)
                return
            except asyncio.TimeoutError:
                continue

    async def check_schedules(self) -> list[str]:
        """Run one evaluation pass.

        Returns:
            IDs of the schedules fired in this pass.
        """
        try:
            schedules = await self._repository.get_enabled()
        except Exception as e:
            self._logger.error("Failed to get enabled schedules", error=str(e))
            return []

        now = self.now()
        self._logger.info(
            "Checking schedules",
            current_time=now.strftime("%Y-%m-%d %H:%M:%S"),
            timezone=now.tzname(),
            day=(now.weekday() + 1) % 7,
            hour=now.hour,
            minute=now.minute,
            enabled_schedules=len(schedules),
        )

        fired: list[str] = []
        for schedule in schedules:
            try:
                due = schedule.is_due(now)
            except Exception as e:
                self._logger.error(
                    "Invalid schedule", schedule_id=schedule.id, error=str(e)
                )
                continue

            self._logger.debug(
                "Checking schedule",
                name=schedule.name,
                type=schedule.describe(),
                due=due,
                last_run=schedule.last_run,
            )
            if not due:
                continue

            self._logger.info(
                "Executing schedule",
                schedule_id=schedule.id,
                name=schedule.name,
                type=schedule.describe(),
                chat_id=schedule.chat_id,
            )
            self._tasks.spawn(
                self.execute_schedule(schedule), name=f"schedule-{schedule.id}"
            )
            if schedule.kind is ScheduleKind.ONCE:
                self._tasks.spawn(self._retire(schedule), name=f"retire-{schedule.id}")
            fired.append(schedule.id)

        return fired

    async def execute_schedule(self, schedule: Schedule) -> ScheduleExecution:
        """Fire a schedule and record the outcome.

        Args:
            schedule: The schedule to fire.

        Returns:
            The execution record that was logged.
        """
        execution = ScheduleExecution(
            id=new_id(), schedule_id=schedule.id, executed_at=self._clock()
        )
        log = self._logger.bind(schedule_id=schedule.id, name=schedule.name)

        try:
            await self._repository.update_last_run(schedule.id, execution.executed_at)
        except Exception as e:
            log.error("Failed to update last run", error=str(e))

        try:
            response = await self._webhook_client.call(schedule.webhook_url, "")
        except Exception as e:
            log.error(
                "Failed to call webhook for schedule",
                webhook_url=schedule.webhook_url,
                error=str(e),
            )
            execution.error = str(e)
            return await self._log_execution(execution, log)

        if response.is_image:
            log.info(
                "Sending scheduled image",
                size=len(response.content),
                mime=response.content_type,
                chat_id=schedule.chat_id,
            )
            try:
                await self._transport.send_image(
                    schedule.chat_id, response.content, response.content_type
                )
            except Exception as e:
                log.error("Failed to send scheduled image", error=str(e))
                execution.error = f"failed to send image: {e}"
                return await self._log_execution(execution, log)
            sent = IMAGE_SENT_MARKER
        else:
            sent = format_for_chat(response.text_content)
            try:
                await self._transport.send_text(schedule.chat_id, sent)
            except Exception as e:
                log.error("Failed to send scheduled message", error=str(e))
                execution.error = f"failed to send message: {e}"
                return await self._log_execution(execution, log)

        execution.success = True
        execution.response = sent
        await self._log_execution(execution, log)
        log.info("Schedule executed successfully")
        return execution

    async def _log_execution(
        self, execution: ScheduleExecution, log: BoundLogger
    ) -> ScheduleExecution:
        try:
            await self._repository.log_execution(execution)
        except Exception as e:
            log.error("Failed to log execution", error=str(e))
        return execution

    async def _retire(self, schedule: Schedule) -> None:
        schedule.retire()
        try:
            await self._repository.update(schedule)
        except Exception as e:
            self._logger.error(
                "Failed to disable one-time schedule",
                schedule_id=schedule.id,
                error=str(e),
            )
            return
        self._logger.info("One-time schedule retired", schedule_id=schedule.id)

    async def create_schedule(self, data: ScheduleInput) -> Schedule:
        schedule = Schedule.from_input(data)
        await self._repository.create(schedule)
        self._logger.info("Schedule created", schedule_id=schedule.id, name=schedule.name)
        return schedule

    async def update_schedule(self, schedule_id: str, data: ScheduleInput) -> Schedule:
        """Overwrite the editable fields of a schedule.

        Raises:
            ScheduleNotFoundError: If the schedule does not exist.
        """
        schedule = await self._repository.get_by_id(schedule_id)
        schedule.apply(data)
        await self._repository.update(schedule)
        self._logger.info("Schedule updated", schedule_id=schedule_id)
        return schedule

    async def delete_schedule(self, schedule_id: str) -> None:
        await self._repository.delete(schedule_id)
        self._logger.info("Schedule deleted", schedule_id=schedule_id)

    async def get_schedule(self, schedule_id: str) -> Schedule:
        return await self._repository.get_by_id(schedule_id)

    async def get_all_schedules(self) -> list[Schedule]:
        return await self._repository.get_all()

    async def get_schedule_executions(
        self, schedule_id: str, limit: int | None = None
    ) -> list[ScheduleExecution]:
        """Return execution history, most recent first.

        Raises:
            ScheduleNotFoundError: If the schedule does not exist.
        """
        await self._repository.get_by_id(schedule_id)
        return await self._repository.get_executions(schedule_id, limit)

    def get_server_time(self) -> ServerTimeInfo:
        now = self.now()
        zone = now.tzname() or ""
        return ServerTimeInfo(
            current_time=now,
            timezone=zone,
            unix_time=int(now.timestamp()),
            day_of_week=(now.weekday() + 1) % 7,
            hour=now.hour,
            minute=now.minute,
            formatted_str=f"{now:%Y-%m-%d %H:%M:%S} {zone}".rstrip(),
        )
