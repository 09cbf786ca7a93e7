"""Logging infrastructure module."""

from chatgate.infrastructure.logging.setup import get_logger, setup_logging

__all__ = ["get_logger", "setup_logging"]
