"""Schedule and ScheduleExecution entities."""

import calendar
from datetime import date, datetime, timedelta, timezone
from enum import Enum
from typing import Any

import ulid
from pydantic import BaseModel, Field as PydanticField, field_validator, model_validator
from sqlalchemy import Column, ForeignKey, Index, String
from sqlmodel import Field, SQLModel

# Evaluation cadence. The duplicate-fire guard uses the same window, so the two
# can never drift apart.
TICK_INTERVAL = timedelta(minutes=1)

IMAGE_SENT_MARKER = "[Image sent]"


def new_id() -> str:
    return str(ulid.new())


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def ensure_utc(value: datetime) -> datetime:
    """Return ``value`` as an aware UTC datetime.

    SQLite hands datetimes back offset-naive; those are stored in UTC.
    """
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def _pad(value: int | None) -> str:
    return "--" if value is None else f"{value:02d}"


class ScheduleKind(str, Enum):
    """Calendar rule kinds."""

    WEEKLY = "weekly"
    YEARLY = "yearly"
    ONCE = "once"


class ScheduleState(str, Enum):
    """Lifecycle state derived from the persisted fields."""

    ACTIVE = "active"
    PAUSED = "paused"
    RETIRED = "retired"


class Schedule(SQLModel, table=True):
    """A recurring or one-shot webhook job.

    Attributes:
        id: ULID identifier.
        name: Human readable name.
        chat_id: Chat the webhook result is posted into.
        webhook_url: Webhook called on every firing.
        schedule_type: One of ``weekly``, ``yearly`` or ``once``.
        day_of_week: 0=Sunday..6=Saturday (weekly only).
        month: 1=January..12=December (yearly only).
        day_of_month: Day of the month (yearly only).
        specific_date: Calendar date (once only).
        hour: Hour of day, 0-23.
        minute: Minute of hour, 0-59.
        enabled: Whether the evaluator considers this schedule.
        last_run: Start of the most recent firing, if any.
        created_at: Record creation time.
        updated_at: Last modification time.
    """

    __tablename__ = "schedules"
    __table_args__ = (
        Index("idx_schedules_day_time", "day_of_week", "hour", "minute"),
        Index("idx_schedules_yearly", "month", "day_of_month", "hour", "minute"),
        Index("idx_schedules_specific_date", "specific_date", "hour", "minute"),
    )

    id: str = Field(default_factory=new_id, primary_key=True)
    name: str
    chat_id: str
    webhook_url: str
    schedule_type: str = Field(default=ScheduleKind.WEEKLY.value, index=True)
    day_of_week: int | None = None
    month: int | None = None
    day_of_month: int | None = None
    specific_date: date | None = None
    hour: int
    minute: int
    enabled: bool = Field(default=True, index=True)
    last_run: datetime | None = None
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)

    @property
    def kind(self) -> ScheduleKind:
        return ScheduleKind(self.schedule_type)

    @property
    def state(self) -> ScheduleState:
        if self.enabled:
            return ScheduleState.ACTIVE
        if self.kind is ScheduleKind.ONCE and self.last_run is not None:
            return ScheduleState.RETIRED
        return ScheduleState.PAUSED

    def matches(self, now: datetime) -> bool:
        """Return True if the calendar rule matches the minute of ``now``.

        ``now`` must already be expressed in the evaluator's local zone.
        """
        if self.hour != now.hour or self.minute != now.minute:
            return False

        kind = self.kind
        if kind is ScheduleKind.WEEKLY:
            # Python weekday() is Monday=0; the stored numbering is Sunday=0.
            return self.day_of_week == (now.weekday() + 1) % 7
        if kind is ScheduleKind.YEARLY:
            return self.month == now.month and self.day_of_month == now.day
        return self.specific_date == now.date()

    def ran_recently(self, now: datetime) -> bool:
        """Return True if the last firing is within one tick of ``now``."""
        if self.last_run is None:
            return False
        return now - ensure_utc(self.last_run) < TICK_INTERVAL

    def is_due(self, now: datetime) -> bool:
        return self.matches(now) and not self.ran_recently(now)

    def retire(self) -> None:
        """Disable a one-time schedule after its single firing.

        Raises:
            ValueError: If the schedule is not a one-time schedule.
        """
        if self.kind is not ScheduleKind.ONCE:
            raise ValueError(f"Only one-time schedules can be retired: {self.id}")
        self.enabled = False
        self.updated_at = utc_now()

    def apply(self, data: "ScheduleInput") -> None:
        """Overwrite the user-editable fields from validated input."""
        for key, value in data.model_dump().items():
            setattr(self, key, value)
        self.schedule_type = data.schedule_type.value
        self.updated_at = utc_now()

    def describe(self) -> str:
        """Short label for logs; missing calendar fields render as ``--``."""
        clock = f"{_pad(self.hour)}:{_pad(self.minute)}"
        if self.schedule_type == ScheduleKind.WEEKLY.value:
            day = "-" if self.day_of_week is None else self.day_of_week
            return f"weekly=day_{day} {clock}"
        if self.schedule_type == ScheduleKind.YEARLY.value:
            return f"yearly={_pad(self.month)}/{_pad(self.day_of_month)} {clock}"
        if self.schedule_type == ScheduleKind.ONCE.value:
            day = self.specific_date.isoformat() if self.specific_date else "-"
            return f"once={day} {clock}"
        return f"{self.schedule_type}=? {clock}"

    @classmethod
    def from_input(cls, data: "ScheduleInput") -> "Schedule":
        now = utc_now()
        schedule = cls(
            id=new_id(),
            name=data.name,
            chat_id=data.chat_id,
            webhook_url=data.webhook_url,
            hour=data.hour,
            minute=data.minute,
            created_at=now,
            updated_at=now,
        )
        schedule.apply(data)
        schedule.updated_at = now
        return schedule


class ScheduleExecution(SQLModel, table=True):
    """Append-only record of one firing attempt."""

    __tablename__ = "schedule_executions"
    __table_args__ = (
        Index("idx_executions_schedule", "schedule_id", "executed_at"),
    )

    id: str = Field(default_factory=new_id, primary_key=True)
    schedule_id: str = Field(
        sa_column=Column(
            String, ForeignKey("schedules.id", ondelete="CASCADE"), nullable=False
        )
    )
    executed_at: datetime = Field(default_factory=utc_now)
    success: bool = False
    error: str | None = None
    response: str | None = None


class ScheduleInput(BaseModel):
    """Validated schedule payload received from the admin API.

    Only the calendar fields relevant to ``schedule_type`` are kept; a missing
    required field is a validation error.
    """

    name: str = PydanticField(min_length=1)
    chat_id: str = PydanticField(min_length=1)
    webhook_url: str = PydanticField(min_length=1)
    schedule_type: ScheduleKind = ScheduleKind.WEEKLY
    day_of_week: int | None = PydanticField(default=None, ge=0, le=6)
    month: int | None = PydanticField(default=None, ge=1, le=12)
    day_of_month: int | None = PydanticField(default=None, ge=1, le=31)
    specific_date: date | None = None
    hour: int = PydanticField(ge=0, le=23)
    minute: int = PydanticField(ge=0, le=59)
    enabled: bool = True

    @field_validator("specific_date", mode="before")
    @classmethod
    def _date_only(cls, value: Any) -> Any:
        # Browsers send either "2025-10-23" or "2025-10-23T00:00:00Z".
        if isinstance(value, str) and "T" in value:
            return value.split("T", 1)[0]
        if value == "":
            return None
        return value

    @model_validator(mode="after")
    def _check_calendar_fields(self) -> "ScheduleInput":
        kind = self.schedule_type
        if kind is ScheduleKind.WEEKLY:
            if self.day_of_week is None:
                raise ValueError("day_of_week is required for weekly schedules")
            self.month = self.day_of_month = None
            self.specific_date = None
        elif kind is ScheduleKind.YEARLY:
            if self.month is None or self.day_of_month is None:
                raise ValueError("month and day_of_month are required for yearly schedules")
            # Leap year so that 29 February stays valid.
            if self.day_of_month > calendar.monthrange(2000, self.month)[1]:
                raise ValueError(
                    f"day_of_month {self.day_of_month} is out of range for month {self.month}"
                )
            self.day_of_week = None
            self.specific_date = None
        else:
            if self.specific_date is None:
                raise ValueError("specific_date is required for one-time schedules")
            self.day_of_week = self.month = self.day_of_month = None
        return self
