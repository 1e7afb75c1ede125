"""Router exports for the stream proxy."""
from . import health, stream

__all__ = ["health", "stream"]
