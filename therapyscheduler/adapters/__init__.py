"""
Adapters layer - Storage collaborators for the scheduling service.
"""

from .memory_store import (
    InMemoryScheduleProvider,
    InMemorySessionStore,
    InMemoryTherapistDirectory,
)

__all__ = ["InMemoryScheduleProvider", "InMemorySessionStore", "InMemoryTherapistDirectory"]
