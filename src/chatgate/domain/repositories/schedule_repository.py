"""ScheduleRepository protocol."""

from datetime import datetime
from typing import Protocol

from chatgate.domain.entities.schedule import Schedule, ScheduleExecution


class ScheduleNotFoundError(LookupError):
    """Raised when a schedule ID does not exist."""


class ScheduleRepository(Protocol):
    """Repository protocol for schedules and their execution history."""

    async def create(self, schedule: Schedule) -> None:
        """Insert a new schedule.

        Args:
            schedule: The schedule to insert.
        """
        ...

    async def get_by_id(self, schedule_id: str) -> Schedule:
        """Get a schedule by ID.

        Raises:
            ScheduleNotFoundError: If the schedule does not exist.
        """
        ...

    async def get_all(self) -> list[Schedule]:
        """Get all schedules in calendar order."""
        ...

    async def get_enabled(self) -> list[Schedule]:
        """Get enabled schedules in calendar order."""
        ...

    async def update(self, schedule: Schedule) -> None:
        """Persist all fields of an existing schedule except ``last_run``.

        Raises:
            ScheduleNotFoundError: If the schedule does not exist.
        """
        ...

    async def delete(self, schedule_id: str) -> None:
        """Delete a schedule and its execution history.

        Raises:
            ScheduleNotFoundError: If the schedule does not exist.
        """
        ...

    async def update_last_run(self, schedule_id: str, last_run: datetime) -> None:
        """Record the start time of the latest firing."""
        ...

    async def log_execution(self, execution: ScheduleExecution) -> None:
        """Append an execution record."""
        ...

    async def get_executions(
        self, schedule_id: str, limit: int | None = None
    ) -> list[ScheduleExecution]:
        """Get execution records, most recent first.

        Args:
            schedule_id: The schedule ID.
            limit: Maximum number of records to return.
        """
        ...
