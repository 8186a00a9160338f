"""API Route modules."""

from . import chat, health

__all__ = ["chat", "health"]
