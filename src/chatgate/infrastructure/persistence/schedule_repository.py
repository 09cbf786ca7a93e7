"""SQLite implementation of ScheduleRepository."""

from datetime import datetime
from typing import Any

from sqlalchemy import delete, update
from sqlmodel import col, select

from chatgate.domain.entities.schedule import (
    Schedule,
    ScheduleExecution,
    ensure_utc,
    utc_now,
)
from chatgate.domain.repositories.schedule_repository import ScheduleNotFoundError
from chatgate.infrastructure.persistence.database import Database

# Fields copied on update. ``last_run`` is owned by the evaluator and
# ``created_at`` never changes.
_EDITABLE_FIELDS = (
    "name",
    "chat_id",
    "webhook_url",
    "schedule_type",
    "day_of_week",
    "month",
    "day_of_month",
    "specific_date",
    "hour",
    "minute",
    "enabled",
)


class SqliteScheduleRepository:
    """SQLite implementation of ScheduleRepository.

    Datetimes are stored as naive UTC and handed back as aware UTC.
    """

    def __init__(self, database: Database) -> None:
        """Initialize the repository.

        Args:
            database: Database instance for session management.
        """
        self._database = database

    async def create(self, schedule: Schedule) -> None:
        schedule.created_at = ensure_utc(schedule.created_at)
        schedule.updated_at = ensure_utc(schedule.updated_at)
        if schedule.last_run is not None:
            schedule.last_run = ensure_utc(schedule.last_run)

        async with self._database.get_session() as session:
            session.add(schedule)

    async def get_by_id(self, schedule_id: str) -> Schedule:
        async with self._database.get_session() as session:
            schedule = await session.get(Schedule, schedule_id)

        if schedule is None:
            raise ScheduleNotFoundError(f"Schedule not found: {schedule_id}")
        return _normalize_schedule(schedule)

    async def get_all(self) -> list[Schedule]:
        return await self._list(enabled_only=False)

    async def get_enabled(self) -> list[Schedule]:
        return await self._list(enabled_only=True)

    async def _list(self, enabled_only: bool) -> list[Schedule]:
        statement = select(Schedule)
        if enabled_only:
            statement = statement.where(col(Schedule.enabled).is_(True))
        statement = statement.order_by(
            col(Schedule.schedule_type),
            col(Schedule.specific_date),
            col(Schedule.month),
            col(Schedule.day_of_month),
            col(Schedule.day_of_week),
            col(Schedule.hour),
            col(Schedule.minute),
            col(Schedule.id),
        )

        async with self._database.get_session() as session:
            result = await session.execute(statement)
            schedules = list(result.scalars().all())

        return [_normalize_schedule(schedule) for schedule in schedules]

    async def update(self, schedule: Schedule) -> None:
        """Persist the editable fields of ``schedule``.

        ``updated_at`` is refreshed; ``last_run`` and ``created_at`` are kept
        as stored.
        """
        async with self._database.get_session() as session:
            existing = await session.get(Schedule, schedule.id)
            if existing is None:
                raise ScheduleNotFoundError(f"Schedule not found: {schedule.id}")

            for field in _EDITABLE_FIELDS:
                setattr(existing, field, getattr(schedule, field))
            existing.updated_at = utc_now()
            session.add(existing)

        schedule.updated_at = ensure_utc(existing.updated_at)

    async def delete(self, schedule_id: str) -> None:
        async with self._database.get_session() as session:
            existing = await session.get(Schedule, schedule_id)
            if existing is None:
                raise ScheduleNotFoundError(f"Schedule not found: {schedule_id}")

            await session.execute(
                delete(ScheduleExecution).where(
                    col(ScheduleExecution.schedule_id) == schedule_id
                )
            )
            await session.delete(existing)

    async def update_last_run(self, schedule_id: str, last_run: datetime) -> None:
        async with self._database.get_session() as session:
            result: Any = await session.execute(
                update(Schedule)
                .where(col(Schedule.id) == schedule_id)
                .values(last_run=ensure_utc(last_run))
            )
            if result.rowcount == 0:
                raise ScheduleNotFoundError(f"Schedule not found: {schedule_id}")

    async def log_execution(self, execution: ScheduleExecution) -> None:
        execution.executed_at = ensure_utc(execution.executed_at)
        async with self._database.get_session() as session:
            session.add(execution)

    async def get_executions(
        self, schedule_id: str, limit: int | None = None
    ) -> list[ScheduleExecution]:
        statement = (
            select(ScheduleExecution)
            .where(col(ScheduleExecution.schedule_id) == schedule_id)
            .order_by(
                col(ScheduleExecution.executed_at).desc(),
                col(ScheduleExecution.id).desc(),
            )
        )
        if limit is not None and limit > 0:
            statement = statement.limit(limit)

        async with self._database.get_session() as session:
            result = await session.execute(statement)
            executions = list(result.scalars().all())

        for execution in executions:
            execution.executed_at = ensure_utc(execution.executed_at)
        return executions


def _normalize_schedule(schedule: Schedule) -> Schedule:
    schedule.created_at = ensure_utc(schedule.created_at)
    schedule.updated_at = ensure_utc(schedule.updated_at)
    if schedule.last_run is not None:
        schedule.last_run = ensure_utc(schedule.last_run)
    return schedule
