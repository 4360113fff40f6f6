"""
Configuration management using Pydantic models loaded from YAML.
"""

from datetime import date
from pathlib import Path
from typing import Dict, List, Optional, Sequence, Tuple

import yaml
from pydantic import BaseModel, Field, field_validator, model_validator

from .domain.exceptions import SchedulingError
from .domain.models import (
    DaySchedule,
    ScheduleConfiguration,
    SchedulingRules,
    Session,
    Therapist,
    parse_time,
)
from .domain.results import OptimizationStrategy

WEEKDAYS = ["monday", "tuesday", "wednesday", "thursday", "friday", "saturday", "sunday"]


def _validate_hhmm(value: Optional[str]) -> Optional[str]:
    if value is None:
        return value
    try:
        parse_time(value)
    except SchedulingError as exc:
        raise ValueError(str(exc)) from exc
    return value.strip()


class ScoringWeights(BaseModel):
    """Weights of the therapist assignment score terms."""
    specialty: float = Field(default=0.4, ge=0, le=1)
    availability: float = Field(default=0.3, ge=0, le=1)
    workload: float = Field(default=0.2, ge=0, le=1)
    rating: float = Field(default=0.1, ge=0, le=1)

    @model_validator(mode="after")
    def validate_total(self) -> "ScoringWeights":
        """Keep the weighted score on a 0-100 scale."""
        total = self.specialty + self.availability + self.workload + self.rating
        if abs(total - 1.0) > 1e-6:
            raise ValueError(f"Scoring weights must add up to 1.0, got {total:.2f}")
        return self


class EngineSettings(BaseModel):
    """Tunables of the scheduling engine."""
    slot_step_minutes: int = 15
    suggestion_limit: int = 5
    min_duration: int = 15
    max_duration: int = 480
    candidate_durations: List[int] = Field(default_factory=lambda: [30, 45, 60, 90, 120])
    default_strategy: OptimizationStrategy = OptimizationStrategy.EFFICIENCY
    acceptance_threshold: float = Field(default=60, ge=0, le=100)
    near_shift_minutes: int = 60
    far_shift_minutes: int = 120
    comfort_gap_minutes: int = 0
    max_time_shift_minutes: int = 60
    max_days_forward: int = Field(default=7, ge=0, le=31)
    weights: ScoringWeights = Field(default_factory=ScoringWeights)

    @field_validator("slot_step_minutes", "suggestion_limit", "min_duration", "max_duration")
    @classmethod
    def validate_positive(cls, value: int) -> int:
        """Ensure step, limit and duration bounds are positive."""
        if value <= 0:
            raise ValueError("value must be greater than zero")
        return value

    @field_validator("candidate_durations")
    @classmethod
    def validate_candidate_durations(cls, value: List[int]) -> List[int]:
        """Ensure durations are positive and deduplicated."""
        invalid = [d for d in value if d <= 0]
        if invalid:
            raise ValueError(f"candidate_durations must be positive, got {invalid}")
        return sorted(set(value))

    @model_validator(mode="after")
    def validate_ranges(self) -> "EngineSettings":
        if self.max_duration < self.min_duration:
            raise ValueError("max_duration must not be smaller than min_duration")
        if self.far_shift_minutes < self.near_shift_minutes:
            raise ValueError("far_shift_minutes must not be smaller than near_shift_minutes")
        return self

    def to_rules(self) -> SchedulingRules:
        """Get the domain rule set for these settings."""
        return SchedulingRules(
            slot_step_minutes=self.slot_step_minutes,
            suggestion_limit=self.suggestion_limit,
            min_duration=self.min_duration,
            max_duration=self.max_duration,
            near_shift_minutes=self.near_shift_minutes,
            comfort_gap_minutes=self.comfort_gap_minutes,
            far_shift_minutes=self.far_shift_minutes,
            acceptance_threshold=self.acceptance_threshold,
            specialty_weight=self.weights.specialty,
            availability_weight=self.weights.availability,
            workload_weight=self.weights.workload,
            rating_weight=self.weights.rating,
        )


class ScheduleEntry(BaseModel):
    """One weekly schedule row of a therapist."""
    day: str
    start: str = "09:00"
    end: str = "17:00"
    break_start: Optional[str] = None
    break_end: Optional[str] = None
    max_sessions_per_day: int = Field(default=8, ge=1, le=20)
    session_duration: int = Field(default=60, ge=15, le=180)
    buffer_minutes: int = Field(default=15, ge=0, le=60)
    is_working_day: bool = True
    effective_date: date = date(2000, 1, 1)
    end_date: Optional[date] = None

    @field_validator("day")
    @classmethod
    def validate_day(cls, value: str) -> str:
        """Accept weekday names in any case."""
        day = value.strip().lower()
        if day not in WEEKDAYS:
            raise ValueError(f"day must be one of {', '.join(WEEKDAYS)}, got {value!r}")
        return day

    @field_validator("start", "end", "break_start", "break_end")
    @classmethod
    def validate_time(cls, value: Optional[str]) -> Optional[str]:
        return _validate_hhmm(value)

    @model_validator(mode="after")
    def validate_schedule(self) -> "ScheduleEntry":
        """Ensure the row builds a valid day schedule and date range."""
        if self.end_date is not None and self.end_date < self.effective_date:
            raise ValueError("end_date must not be before effective_date")
        try:
            self.to_day_schedule()
        except SchedulingError as exc:
            raise ValueError(str(exc)) from exc
        return self

    def to_day_schedule(self) -> DaySchedule:
        return DaySchedule.from_strings(
            self.start,
            self.end,
            self.break_start,
            self.break_end,
            max_sessions_per_day=self.max_sessions_per_day,
            default_duration=self.session_duration,
            buffer_minutes=self.buffer_minutes,
        )

    def to_configuration(self, therapist_id: str) -> ScheduleConfiguration:
        return ScheduleConfiguration(
            therapist_id=therapist_id,
            day_of_week=WEEKDAYS.index(self.day),
            schedule=self.to_day_schedule(),
            effective_date=self.effective_date,
            end_date=self.end_date,
            is_working_day=self.is_working_day,
        )


class TherapistEntry(BaseModel):
    """Therapist roster configuration."""
    id: str
    name: str
    specialties: List[str] = Field(default_factory=list)
    rating: Optional[float] = Field(default=None, ge=0, le=5)
    experience_years: int = Field(default=0, ge=0)
    current_workload: int = Field(default=0, ge=0)
    max_workload: int = Field(default=8, ge=1)
    is_active: bool = True
    can_take_consultations: bool = True
    schedules: List[ScheduleEntry] = Field(default_factory=list)

    def to_therapist(self) -> Therapist:
        return Therapist(
            therapist_id=self.id,
            name=self.name,
            specialties=frozenset(self.specialties),
            current_workload=self.current_workload,
            max_workload=self.max_workload,
            rating=self.rating,
            experience_years=self.experience_years,
            is_active=self.is_active,
            can_take_consultations=self.can_take_consultations,
        )


class SessionEntry(BaseModel):
    """A booked session in the roster."""
    id: str
    therapist: str
    day: date
    start: str
    duration: int = Field(default=60, ge=1)
    patient: Optional[str] = None

    @field_validator("start")
    @classmethod
    def validate_start(cls, value: str) -> str:
        return _validate_hhmm(value)

    def to_session(self) -> Session:
        return Session(
            session_id=self.id,
            therapist_id=self.therapist,
            day=self.day,
            start=parse_time(self.start),
            duration=self.duration,
            patient_name=self.patient,
        )


class AppConfig(BaseModel):
    """Application configuration."""
    timezone: str = "Europe/Berlin"
    engine: EngineSettings = Field(default_factory=EngineSettings)
    therapists: List[TherapistEntry] = Field(default_factory=list)
    sessions: List[SessionEntry] = Field(default_factory=list)

    @field_validator("therapists")
    @classmethod
    def validate_therapists(cls, value: List[TherapistEntry]) -> List[TherapistEntry]:
        """Ensure therapist ids and names are unique."""
        seen_ids: set[str] = set()
        seen_names: set[str] = set()
        for therapist in value:
            name_key = therapist.name.lower()
            if therapist.id in seen_ids:
                raise ValueError(f"Duplicate therapist id detected: {therapist.id}")
            if name_key in seen_names:
                raise ValueError(f"Duplicate therapist name detected: {therapist.name}")
            seen_ids.add(therapist.id)
            seen_names.add(name_key)
        return value

    @model_validator(mode="after")
    def validate_sessions(self) -> "AppConfig":
        """Ensure sessions are unique, reference known therapists and do not overlap."""
        known = {t.id for t in self.therapists}
        seen: set[str] = set()
        for session in self.sessions:
            if session.id in seen:
                raise ValueError(f"Duplicate session id detected: {session.id}")
            if session.therapist not in known:
                raise ValueError(
                    f"Session {session.id} references unknown therapist '{session.therapist}'"
                )
            seen.add(session.id)

        by_day: Dict[Tuple[str, date], List[SessionEntry]] = {}
        for session in self.sessions:
            by_day.setdefault((session.therapist, session.day), []).append(session)
        for (therapist_id, day), entries in by_day.items():
            entries = sorted(entries, key=lambda s: (parse_time(s.start), s.id))
            for earlier, later in zip(entries, entries[1:]):
                if parse_time(earlier.start) + earlier.duration > parse_time(later.start):
                    raise ValueError(
                        f"Sessions {earlier.id} and {later.id} of therapist "
                        f"'{therapist_id}' overlap on {day.isoformat()}"
                    )
        return self

    @classmethod
    def load_from_yaml(cls, config_path: Path) -> "AppConfig":
        """
        Load configuration from YAML file.

        Args:
            config_path: Path to the YAML config file

        Returns:
            AppConfig instance

        Raises:
            FileNotFoundError: If config file doesn't exist
            ValueError: If config is invalid
        """
        if not config_path.exists():
            raise FileNotFoundError(
                f"Config file not found: {config_path}\n"
                f"Please create a config.yaml file. See config.example.yaml for reference."
            )

        try:
            with open(config_path, "r", encoding="utf-8") as f:
                data = yaml.safe_load(f) or {}
        except yaml.YAMLError as exc:
            raise ValueError(f"Invalid YAML in {config_path}: {exc}") from exc

        if not isinstance(data, dict):
            raise ValueError("Config file must contain a mapping at the root level.")

        return cls(**data)

    def find_therapist(self, identifier: str) -> TherapistEntry | None:
        """Find a therapist by id or name (case-insensitive)."""
        for therapist in self.therapists:
            if therapist.id == identifier or therapist.name.lower() == identifier.lower():
                return therapist
        return None

    def resolve_therapist_id(self, identifier: str) -> str:
        """
        Resolve a therapist id or name to an id.

        Raises:
            ValueError: If identifier cannot be resolved
        """
        therapist = self.find_therapist(identifier)
        if therapist is None:
            raise ValueError(
                f"Unknown therapist identifier: '{identifier}'. "
                f"Use a configured id or name."
            )
        return therapist.id

    def schedule_entry_for(self, therapist_id: str, day: date) -> Optional[ScheduleEntry]:
        """Get the schedule row that applies on a day; the latest effective one wins."""
        therapist = self.find_therapist(therapist_id)
        if therapist is None:
            return None
        covering = [
            entry for entry in therapist.schedules
            if entry.to_configuration(therapist.id).covers(day)
        ]
        if not covering:
            return None
        return max(covering, key=lambda entry: entry.effective_date)

    def schedule_configurations(self) -> List[ScheduleConfiguration]:
        return [
            entry.to_configuration(therapist.id)
            for therapist in self.therapists
            for entry in therapist.schedules
        ]

    def roster_sessions(self, therapist_ids: Sequence[str] = ()) -> List[Session]:
        return [
            s.to_session() for s in self.sessions
            if not therapist_ids or s.therapist in therapist_ids
        ]


def get_default_config_path() -> Path:
    """Get the default configuration file path."""
    # Look for config.yaml in current directory
    current_dir = Path.cwd()
    config_path = current_dir / "config.yaml"

    if not config_path.exists():
        # Try in the project root (parent of the package)
        project_root = Path(__file__).parent.parent
        config_path = project_root / "config.yaml"

    return config_path
