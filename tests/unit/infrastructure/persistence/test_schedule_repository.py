"""Tests for SqliteScheduleRepository."""

from collections.abc import AsyncIterator
from datetime import date, datetime, timedelta, timezone
from pathlib import Path

import pytest

from chatgate.domain.entities.schedule import (
    Schedule,
    ScheduleExecution,
    ScheduleInput,
    ScheduleKind,
)
from chatgate.domain.repositories.schedule_repository import ScheduleNotFoundError
from chatgate.infrastructure.persistence.database import Database
from chatgate.infrastructure.persistence.schedule_repository import (
    SqliteScheduleRepository,
)

BASE_TIME = datetime(2025, 10, 22, 0, 0, tzinfo=timezone.utc)


@pytest.fixture
async def database(tmp_path: Path) -> AsyncIterator[Database]:
    database = Database(f"sqlite+aiosqlite:///{tmp_path / 'test.db'}")
    await database.initialize()
    yield database
    await database.close()


@pytest.fixture
def repository(database: Database) -> SqliteScheduleRepository:
    return SqliteScheduleRepository(database)


def weekly(name: str = "standup", day_of_week: int = 3, hour: int = 9) -> Schedule:
    return Schedule.from_input(
        ScheduleInput(
            name=name,
            chat_id="group-1@g.us",
            webhook_url=f"http://hooks/{name}",
            schedule_type=ScheduleKind.WEEKLY,
            day_of_week=day_of_week,
            hour=hour,
            minute=0,
        )
    )


def execution(schedule_id: str, minutes: int, success: bool = True) -> ScheduleExecution:
    return ScheduleExecution(
        schedule_id=schedule_id,
        executed_at=BASE_TIME + timedelta(minutes=minutes),
        success=success,
        response=f"run {minutes}",
    )


class TestCreateAndGet:
    """Tests for create, get_by_id and get_all."""

    async def test_round_trip(self, repository: SqliteScheduleRepository) -> None:
        schedule = weekly()

        await repository.create(schedule)
        stored = await repository.get_by_id(schedule.id)

        assert stored.name == "standup"
        assert stored.kind is ScheduleKind.WEEKLY
        assert stored.day_of_week == 3
        assert stored.enabled is True
        assert stored.last_run is None
        assert stored.created_at.tzinfo is not None

    async def test_once_keeps_calendar_date(
        self, repository: SqliteScheduleRepository
    ) -> None:
        schedule = Schedule.from_input(
            ScheduleInput(
                name="launch",
                chat_id="group-1@g.us",
                webhook_url="http://hooks/launch",
                schedule_type=ScheduleKind.ONCE,
                specific_date=date(2025, 10, 23),
                hour=14,
                minute=5,
            )
        )

        await repository.create(schedule)
        stored = await repository.get_by_id(schedule.id)

        assert stored.specific_date == date(2025, 10, 23)
        assert stored.day_of_week is None

    async def test_missing_id_raises(self, repository: SqliteScheduleRepository) -> None:
        with pytest.raises(ScheduleNotFoundError):
            await repository.get_by_id("missing")

    async def test_get_all_includes_disabled(
        self, repository: SqliteScheduleRepository
    ) -> None:
        active = weekly("active")
        paused = weekly("paused")
        paused.enabled = False
        await repository.create(active)
        await repository.create(paused)

        all_names = {s.name for s in await repository.get_all()}
        enabled_names = [s.name for s in await repository.get_enabled()]

        assert all_names == {"active", "paused"}
        assert enabled_names == ["active"]

    async def test_listing_is_ordered_by_time(
        self, repository: SqliteScheduleRepository
    ) -> None:
        await repository.create(weekly("late", hour=18))
        await repository.create(weekly("early", hour=7))

        names = [s.name for s in await repository.get_all()]

        assert names == ["early", "late"]


class TestUpdate:
    """Tests for update and update_last_run."""

    async def test_update_editable_fields(
        self, repository: SqliteScheduleRepository
    ) -> None:
        schedule = weekly()
        await repository.create(schedule)

        schedule.name = "renamed"
        schedule.enabled = False
        await repository.update(schedule)
        stored = await repository.get_by_id(schedule.id)

        assert stored.name == "renamed"
        assert stored.enabled is False
        assert stored.updated_at >= stored.created_at

    async def test_update_keeps_stored_last_run(
        self, repository: SqliteScheduleRepository
    ) -> None:
        schedule = weekly()
        await repository.create(schedule)
        await repository.update_last_run(schedule.id, BASE_TIME)

        schedule.last_run = None
        await repository.update(schedule)
        stored = await repository.get_by_id(schedule.id)

        assert stored.last_run == BASE_TIME

    async def test_update_missing_raises(
        self, repository: SqliteScheduleRepository
    ) -> None:
        with pytest.raises(ScheduleNotFoundError):
            await repository.update(weekly())

    async def test_update_last_run_is_aware_utc(
        self, repository: SqliteScheduleRepository
    ) -> None:
        schedule = weekly()
        await repository.create(schedule)
        tokyo = timezone(timedelta(hours=9))

        await repository.update_last_run(schedule.id, BASE_TIME.astimezone(tokyo))
        stored = await repository.get_by_id(schedule.id)

        assert stored.last_run == BASE_TIME
        assert stored.last_run is not None
        assert stored.last_run.utcoffset() == timedelta(0)

    async def test_update_last_run_missing_raises(
        self, repository: SqliteScheduleRepository
    ) -> None:
        with pytest.raises(ScheduleNotFoundError):
            await repository.update_last_run("missing", BASE_TIME)


class TestExecutions:
    """Tests for execution history."""

    async def test_most_recent_first(self, repository: SqliteScheduleRepository) -> None:
        schedule = weekly()
        await repository.create(schedule)
        for minutes in (0, 2, 1):
            await repository.log_execution(execution(schedule.id, minutes))

        history = await repository.get_executions(schedule.id)

        assert [e.response for e in history] == ["run 2", "run 1", "run 0"]
        assert history[0].executed_at == BASE_TIME + timedelta(minutes=2)

    async def test_limit(self, repository: SqliteScheduleRepository) -> None:
        schedule = weekly()
        await repository.create(schedule)
        for minutes in range(5):
            await repository.log_execution(execution(schedule.id, minutes))

        history = await repository.get_executions(schedule.id, limit=2)

        assert [e.response for e in history] == ["run 4", "run 3"]

    async def test_failure_is_recorded(
        self, repository: SqliteScheduleRepository
    ) -> None:
        schedule = weekly()
        await repository.create(schedule)
        failed = ScheduleExecution(
            schedule_id=schedule.id,
            executed_at=BASE_TIME,
            error="webhook returned status 500",
        )

        await repository.log_execution(failed)
        (stored,) = await repository.get_executions(schedule.id)

        assert stored.success is False
        assert stored.error == "webhook returned status 500"
        assert stored.response is None

    async def test_history_is_per_schedule(
        self, repository: SqliteScheduleRepository
    ) -> None:
        first, second = weekly("first"), weekly("second")
        await repository.create(first)
        await repository.create(second)
        await repository.log_execution(execution(first.id, 0))

        assert await repository.get_executions(second.id) == []


class TestDelete:
    """Tests for delete."""

    async def test_delete_removes_executions(
        self, repository: SqliteScheduleRepository
    ) -> None:
        schedule = weekly()
        await repository.create(schedule)
        await repository.log_execution(execution(schedule.id, 0))

        await repository.delete(schedule.id)

        with pytest.raises(ScheduleNotFoundError):
            await repository.get_by_id(schedule.id)
        assert await repository.get_executions(schedule.id) == []

    async def test_delete_missing_raises(
        self, repository: SqliteScheduleRepository
    ) -> None:
        with pytest.raises(ScheduleNotFoundError):
            await repository.delete("missing")
