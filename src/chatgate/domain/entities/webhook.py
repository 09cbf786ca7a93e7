"""Webhook routing rule and webhook response entities."""

import re

from pydantic import BaseModel, ConfigDict

DEFAULT_WEBHOOK_TIMEOUT = 30.0

TEXT_CONTENT_TYPE = "text"
IMAGE_CONTENT_TYPES = frozenset({"image/jpeg", "image/png"})

# Go-style duration strings: "45s", "2m", "1m30s", "1.5h", "500ms"
_DURATION_PART = re.compile(r"(\d+(?:\.\d+)?)(ms|us|µs|ns|h|m|s)")
_UNIT_SECONDS = {
    "h": 3600.0,
    "m": 60.0,
    "s": 1.0,
    "ms": 1e-3,
    "us": 1e-6,
    "µs": 1e-6,
    "ns": 1e-9,
}


def parse_duration(value: str) -> float:
    """Parse a duration string into seconds.

    Args:
        value: Duration such as "60s", "2m" or "1m30s".

    Returns:
        The duration in seconds.

    Raises:
        ValueError: If the string is not a positive duration.
    """
    text = value.strip()
    if not text:
        raise ValueError("Empty duration")

    position = 0
    total = 0.0
    for match in _DURATION_PART.finditer(text):
        if match.start() != position:
            break
        total += float(match.group(1)) * _UNIT_SECONDS[match.group(2)]
        position = match.end()

    if position != len(text):
        raise ValueError(f"Invalid duration: {value!r}")
    if total <= 0:
        raise ValueError(f"Duration must be positive: {value!r}")
    return total


class WebhookRule(BaseModel):
    """Routes messages starting with ``sub_trigger`` to ``url``."""

    model_config = ConfigDict(frozen=True)

    sub_trigger: str
    url: str
    timeout: str | None = None

    def matches(self, content: str) -> bool:
        return content.strip().startswith(self.sub_trigger)

    def strip(self, content: str) -> str:
        return content.strip().removeprefix(self.sub_trigger).strip()

    def timeout_seconds(self) -> float:
        """Return the configured timeout, falling back to the 30s default.

        Raises:
            ValueError: If a timeout is configured but cannot be parsed.
        """
        if not self.timeout:
            return DEFAULT_WEBHOOK_TIMEOUT
        return parse_duration(self.timeout)


class WebhookResponse(BaseModel):
    """Result of a single webhook call.

    Attributes:
        content_type: "text" or one of the supported image MIME types.
        content: Raw response body.
        text_content: Extracted text when the response is textual.
    """

    content_type: str
    content: bytes = b""
    text_content: str = ""

    @property
    def is_image(self) -> bool:
        return self.content_type in IMAGE_CONTENT_TYPES
