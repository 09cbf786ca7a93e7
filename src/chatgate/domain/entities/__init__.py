"""Domain entities."""

from chatgate.domain.entities.message import AuthStatus, Group, Message
from chatgate.domain.entities.schedule import (
    Schedule,
    ScheduleExecution,
    ScheduleInput,
    ScheduleKind,
    ScheduleState,
)
from chatgate.domain.entities.webhook import WebhookResponse, WebhookRule

__all__ = [
    "AuthStatus",
    "Group",
    "Message",
    "Schedule",
    "ScheduleExecution",
    "ScheduleInput",
    "ScheduleKind",
    "ScheduleState",
    "WebhookResponse",
    "WebhookRule",
]
