"""Tracing infrastructure module."""

from chatgate.infrastructure.tracing.setup import setup_tracing

__all__ = ["setup_tracing"]
