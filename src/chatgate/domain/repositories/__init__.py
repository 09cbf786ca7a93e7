"""Repository protocols."""

from chatgate.domain.repositories.message_repository import MessageRepository
from chatgate.domain.repositories.schedule_repository import (
    ScheduleNotFoundError,
    ScheduleRepository,
)

__all__ = ["MessageRepository", "ScheduleNotFoundError", "ScheduleRepository"]
