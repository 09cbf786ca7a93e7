"""Chat transport infrastructure."""

from chatgate.infrastructure.transport.bridge import HttpBridgeTransport, TransportError

__all__ = ["HttpBridgeTransport", "TransportError"]
