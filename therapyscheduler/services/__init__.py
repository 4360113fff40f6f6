"""
Service layer helpers that orchestrate adapters and domain logic.
"""

from .scheduling import (
    ScheduleProvider,
    SchedulingService,
    SessionStore,
    TherapistDirectory,
)

__all__ = ["ScheduleProvider", "SchedulingService", "SessionStore", "TherapistDirectory"]
