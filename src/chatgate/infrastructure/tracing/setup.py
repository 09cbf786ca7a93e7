"""OpenTelemetry tracing for LLM calls."""

import os

from strands.telemetry import StrandsTelemetry

DEFAULT_SERVICE_NAME = "chatgate"


def setup_tracing(service_name: str = DEFAULT_SERVICE_NAME) -> StrandsTelemetry | None:
    """Export strands agent spans when an OTLP endpoint is configured.

    ``OTEL_SERVICE_NAME`` is only set when the environment leaves it empty.

    Args:
        service_name: Fallback service name.

    Returns:
        The telemetry instance if OTEL_EXPORTER_OTLP_ENDPOINT is set, None
        otherwise.
    """
    if not os.environ.get("OTEL_EXPORTER_OTLP_ENDPOINT"):
        return None

    if not os.environ.get("OTEL_SERVICE_NAME"):
        os.environ["OTEL_SERVICE_NAME"] = service_name

    telemetry = StrandsTelemetry()
    telemetry.setup_otlp_exporter()
    return telemetry
