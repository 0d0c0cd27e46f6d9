"""
Domain models for swim session tracking.

These models represent the core business concepts. They have no
dependencies on storage backends or the HTTP layer: a swim session is
expressible without knowing how it is persisted or transmitted.

The serialized shape of a session (id, distance, duration, pace, date,
notes) is also the on-disk format and the export format, so the
to_dict/from_dict pair is kept deliberately literal.
"""

import re
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional, Union

Number = Union[int, float]

REQUIRED_FIELDS = ("id", "distance", "duration", "pace", "date")


class SessionValidationError(ValueError):
    """Raised when session input fails validation."""
    pass


class ErrorType(Enum):
    """
    Why a store operation failed.

    QUOTA_EXCEEDED is kept apart from STORAGE_ERROR so the caller can
    suggest exporting or deleting old sessions instead of a generic retry.
    """
    VALIDATION_ERROR = "VALIDATION_ERROR"
    QUOTA_EXCEEDED = "QUOTA_EXCEEDED"
    STORAGE_ERROR = "STORAGE_ERROR"


class ImportMode(Enum):
    """How imported sessions combine with the existing collection."""
    MERGE = "merge"      # Keep existing, append sessions with new ids
    REPLACE = "replace"  # Discard existing, keep exactly the imported ones


# ---------------------------------------------------------------------------
# Time helpers
# ---------------------------------------------------------------------------

_COLON_DURATION = re.compile(r"^(\d+):(\d{1,2})(?::(\d{1,2}))?$")
_MINUTES_DURATION = re.compile(r"^\d+$")


def parse_duration(text: str) -> int:
    """
    Parse user-entered duration text into whole seconds.

    Accepts MM:SS, HH:MM:SS, or a bare number of minutes ("30").
    The result must be positive.
    """
    value = (text or "").strip()

    if _MINUTES_DURATION.match(value):
        seconds = int(value) * 60
    else:
        match = _COLON_DURATION.match(value)
        if not match:
            raise SessionValidationError(
                f"Invalid duration '{text}'. Use MM:SS or HH:MM:SS."
            )

        first, second, third = match.groups()
        if third is None:
            minutes, secs = int(first), int(second)
            hours = 0
        else:
            hours, minutes, secs = int(first), int(second), int(third)
            if minutes >= 60:
                raise SessionValidationError(
                    f"Invalid duration '{text}': minutes must be below 60"
                )

        if secs >= 60:
            raise SessionValidationError(
                f"Invalid duration '{text}': seconds must be below 60"
            )

        seconds = hours * 3600 + minutes * 60 + secs

    if seconds <= 0:
        raise SessionValidationError("Duration must be greater than zero")

    return seconds


def calculate_pace(distance: Number, duration: Number) -> float:
    """Seconds per 100 meters. Zero when either input is missing or zero."""
    if not distance or not duration:
        return 0.0
    return duration / (distance / 100)


def format_pace(pace: Number) -> str:
    """Human-readable pace: M:SS/100m"""
    if not pace or pace <= 0:
        return "--:--/100m"
    total = int(round(pace))
    return f"{total // 60}:{total % 60:02d}/100m"


def format_duration(seconds: Number) -> str:
    """Human-readable duration: H:MM:SS, or M:SS under an hour."""
    total = int(round(seconds or 0))
    hours, remainder = divmod(total, 3600)
    minutes, secs = divmod(remainder, 60)
    if hours:
        return f"{hours}:{minutes:02d}:{secs:02d}"
    return f"{minutes}:{secs:02d}"


def utc_now_iso() -> str:
    """Current time as ISO-8601 UTC with milliseconds, e.g. 2024-05-01T07:30:00.000Z"""
    return to_iso(datetime.now(timezone.utc))


def to_iso(moment: datetime) -> str:
    """Render a datetime as ISO-8601 UTC with milliseconds and a Z suffix."""
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    moment = moment.astimezone(timezone.utc)
    return moment.isoformat(timespec="milliseconds").replace("+00:00", "Z")


def parse_iso(value: str) -> datetime:
    """
    Parse an ISO-8601 timestamp into an aware datetime.

    A trailing Z is accepted; naive timestamps are taken as UTC.
    """
    if not isinstance(value, str):
        raise ValueError(f"Timestamp must be a string, got {type(value).__name__}")

    text = value.strip()
    if text.endswith(("Z", "z")):
        text = text[:-1] + "+00:00"

    parsed = datetime.fromisoformat(text)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def validate_record(data: Any) -> None:
    """
    Check a serialized session before it is accepted from outside.

    Every required field must be present and truthy, the numeric fields
    must be numbers, id and date must be strings, and notes, when present,
    must be a string too. Value ranges are not checked here.
    """
    if not isinstance(data, dict):
        raise SessionValidationError("Session record must be an object")

    missing = [name for name in REQUIRED_FIELDS if not data.get(name)]
    if missing:
        raise SessionValidationError(
            f"Session is missing required fields: {', '.join(missing)}"
        )

    if not isinstance(data["id"], str):
        raise SessionValidationError("Session id must be a string")

    for name in ("distance", "duration", "pace"):
        if not _is_number(data[name]):
            raise SessionValidationError(f"Session {name} must be a number")

    if not isinstance(data["date"], str):
        raise SessionValidationError("Session date must be a string")

    if data.get("notes") is not None and not isinstance(data["notes"], str):
        raise SessionValidationError("Session notes must be a string")


# ---------------------------------------------------------------------------
# Entities
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class SwimSession:
    """
    A logged swim.

    Frozen because a session never changes once it is logged; it is
    either kept or deleted. Field values are stored exactly as they
    were written so an export followed by an import gives back equal
    sessions.
    """
    id: str
    distance: Number   # meters
    duration: Number   # seconds
    pace: Number       # seconds per 100m
    date: str          # ISO-8601
    notes: Optional[str] = None

    @property
    def logged_at(self) -> datetime:
        return parse_iso(self.date)

    @property
    def pace_display(self) -> str:
        return format_pace(self.pace)

    @property
    def duration_display(self) -> str:
        return format_duration(self.duration)

    def to_dict(self) -> dict[str, Any]:
        """Serialized form. notes is omitted when absent."""
        data: dict[str, Any] = {
            "id": self.id,
            "distance": self.distance,
            "duration": self.duration,
            "pace": self.pace,
            "date": self.date,
        }
        if self.notes is not None:
            data["notes"] = self.notes
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "SwimSession":
        """Build a session from its serialized form. Unknown keys are ignored."""
        missing = [name for name in REQUIRED_FIELDS if name not in data]
        if missing:
            raise SessionValidationError(
                f"Session is missing fields: {', '.join(missing)}"
            )
        return cls(
            id=data["id"],
            distance=data["distance"],
            duration=data["duration"],
            pace=data["pace"],
            date=data["date"],
            notes=data.get("notes"),
        )


@dataclass(frozen=True)
class NewSession:
    """
    A swim about to be logged: everything but the id.

    Validation happens here so nothing invalid ever reaches the store.
    pace is computed when not supplied.
    """
    distance: Number
    duration: Number
    date: str = field(default_factory=utc_now_iso)
    pace: Optional[Number] = None
    notes: Optional[str] = None

    def __post_init__(self) -> None:
        if not _is_number(self.distance):
            raise SessionValidationError("Distance must be a number")
        if not _is_number(self.duration):
            raise SessionValidationError("Duration must be a number")
        if self.distance <= 0 or int(self.distance) != self.distance:
            raise SessionValidationError("Distance must be a positive whole number of meters")
        if self.duration <= 0 or int(self.duration) != self.duration:
            raise SessionValidationError("Duration must be a positive whole number of seconds")

        try:
            parse_iso(self.date)
        except ValueError as e:
            raise SessionValidationError(f"Invalid session date '{self.date}': {e}")

        if self.pace is None:
            # frozen dataclass, so set through object.__setattr__
            object.__setattr__(self, "pace", calculate_pace(self.distance, self.duration))

        if self.notes is not None and not self.notes.strip():
            object.__setattr__(self, "notes", None)

    def with_id(self, session_id: str) -> SwimSession:
        return SwimSession(
            id=session_id,
            distance=self.distance,
            duration=self.duration,
            pace=self.pace,
            date=self.date,
            notes=self.notes,
        )


# ---------------------------------------------------------------------------
# Derived values and operation results
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class SessionStatistics:
    """Sums and means over the whole collection. All zero when empty."""
    total_sessions: int = 0
    total_distance: Number = 0
    total_duration: Number = 0
    average_pace: float = 0.0
    average_distance: float = 0.0
    average_duration: float = 0.0


@dataclass(frozen=True)
class StorageUsage:
    """
    How close the store is to its limits.

    Informational only; nothing here ever blocks a save.
    """
    used_bytes: int
    quota_bytes: int
    session_count: int
    near_capacity: bool
    too_many_sessions: bool

    @property
    def usage_ratio(self) -> float:
        if self.quota_bytes <= 0:
            return 0.0
        return self.used_bytes / self.quota_bytes

    @property
    def should_archive(self) -> bool:
        return self.near_capacity or self.too_many_sessions

    @property
    def recommendation(self) -> Optional[str]:
        if self.near_capacity:
            return (
                f"Storage is {self.usage_ratio:.0%} full. "
                "Export your sessions and delete old ones to free space."
            )
        if self.too_many_sessions:
            return (
                f"You have {self.session_count} sessions stored. "
                "Consider exporting older sessions as an archive."
            )
        return None


@dataclass(frozen=True)
class SaveResult:
    """Outcome of logging a session."""
    success: bool
    session: Optional[SwimSession] = None
    error_type: Optional[ErrorType] = None
    error: Optional[str] = None


@dataclass(frozen=True)
class OperationResult:
    """Outcome of a delete."""
    success: bool
    error_type: Optional[ErrorType] = None
    error: Optional[str] = None


@dataclass(frozen=True)
class ImportResult:
    """Outcome of an import."""
    success: bool
    mode: ImportMode = ImportMode.MERGE
    imported_count: int = 0
    skipped_count: int = 0
    error_type: Optional[ErrorType] = None
    error: Optional[str] = None
