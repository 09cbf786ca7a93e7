"""Persistence infrastructure."""

from chatgate.infrastructure.persistence.database import Database
from chatgate.infrastructure.persistence.message_repository import (
    InMemoryMessageRepository,
)
from chatgate.infrastructure.persistence.schedule_repository import (
    SqliteScheduleRepository,
)

__all__ = ["Database", "InMemoryMessageRepository", "SqliteScheduleRepository"]
