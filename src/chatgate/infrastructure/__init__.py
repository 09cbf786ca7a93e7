"""Infrastructure layer."""

from chatgate.infrastructure.background import BackgroundTasks
from chatgate.infrastructure.persistence import Database

__all__ = ["BackgroundTasks", "Database"]
