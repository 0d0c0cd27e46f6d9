"""
Session store: the owner of the swim session history.

The store keeps the canonical list of sessions in memory and mirrors it
to one slot of a key-value storage backend as a JSON array. Every
mutation builds the new list first, writes the whole list, and only
then swaps it in. If the write fails the in-memory list stays as it was,
so memory and storage always agree on the last successful write.

Failures come back as result objects instead of exceptions. A full
store (QUOTA_EXCEEDED) is reported separately from other write
failures (STORAGE_ERROR) so the caller can point the swimmer at
export/delete rather than a generic retry.
"""

import json
import logging
import random
import string
import time
from datetime import datetime, timezone
from typing import Any, Iterable, Optional, Union

from ...infrastructure.storage.client import (
    KeyValueStorage,
    StorageError,
    StorageQuotaExceededError,
)
from .models import (
    ErrorType,
    ImportMode,
    ImportResult,
    NewSession,
    OperationResult,
    SaveResult,
    SessionStatistics,
    SessionValidationError,
    StorageUsage,
    SwimSession,
    calculate_pace,
    parse_duration,
    to_iso,
    validate_record,
)

logger = logging.getLogger(__name__)

STORAGE_KEY = "swimSessions"
DEFAULT_WARNING_RATIO = 0.8
DEFAULT_SESSION_THRESHOLD = 1000

_ID_ALPHABET = string.digits + string.ascii_lowercase


def generate_session_id() -> str:
    """
    Time-based id with a random suffix: session-<epoch ms>-<9 base36 chars>.

    Collisions are unlikely but possible; the store checks new ids
    against the ids it already holds.
    """
    millis = int(time.time() * 1000)
    suffix = "".join(random.choices(_ID_ALPHABET, k=9))
    return f"session-{millis}-{suffix}"


class SessionStore:
    """
    Owner of the swim session collection.

    Create one per process with an explicit storage backend and pass it
    to whatever needs it. Consumers get tuples of frozen sessions, never
    the store's own list.
    """

    def __init__(
        self,
        storage: KeyValueStorage,
        storage_key: str = STORAGE_KEY,
        warning_ratio: float = DEFAULT_WARNING_RATIO,
        session_threshold: int = DEFAULT_SESSION_THRESHOLD,
    ) -> None:
        self._storage = storage
        self._key = storage_key
        self._warning_ratio = warning_ratio
        self._session_threshold = session_threshold
        self._discarded: list[Any] = []
        self._sessions: list[SwimSession] = self._load()

    @property
    def sessions(self) -> tuple[SwimSession, ...]:
        """Snapshot of the collection in stored order (newest logged first)."""
        return tuple(self._sessions)

    @property
    def storage_key(self) -> str:
        return self._key

    @property
    def discarded_records(self) -> tuple[Any, ...]:
        """Raw stored records the last load could not read. The next write drops them."""
        return tuple(self._discarded)

    def __len__(self) -> int:
        return len(self._sessions)

    def reload(self) -> None:
        """Re-read the storage slot, replacing the in-memory collection."""
        self._sessions = self._load()

    # -----------------------------------------------------------------------
    # Mutations
    # -----------------------------------------------------------------------

    def save_session(self, new_session: NewSession) -> SaveResult:
        """
        Log a session: assign an id, prepend it, persist everything.

        Nothing changes in memory unless the write succeeds.
        """
        session = new_session.with_id(self._unique_id())
        updated = [session, *self._sessions]

        failure = self._persist(updated, operation="save")
        if failure is not None:
            error_type, error = failure
            return SaveResult(success=False, error_type=error_type, error=error)

        self._sessions = updated
        logger.info(
            "Saved swim session",
            extra={
                "session_id": session.id,
                "distance": session.distance,
                "duration": session.duration,
                "total_sessions": len(updated),
            }
        )
        return SaveResult(success=True, session=session)

    def log_session(
        self,
        distance: Union[int, float],
        duration_text: str,
        notes: Optional[str] = None,
        logged_at: Optional[datetime] = None,
    ) -> SaveResult:
        """
        Log a swim from form input.

        duration_text is MM:SS, HH:MM:SS or whole minutes. Invalid input
        comes back as a VALIDATION_ERROR result and nothing is written.
        """
        try:
            duration = parse_duration(duration_text)
            new_session = NewSession(
                distance=distance,
                duration=duration,
                date=to_iso(logged_at or datetime.now(timezone.utc)),
                notes=notes,
            )
        except SessionValidationError as e:
            logger.warning(
                "Rejected swim session input",
                extra={"distance": distance, "duration_text": duration_text, "error": str(e)}
            )
            return SaveResult(
                success=False,
                error_type=ErrorType.VALIDATION_ERROR,
                error=str(e),
            )

        return self.save_session(new_session)

    def delete_session(self, session_id: str) -> OperationResult:
        """
        Remove a session by id.

        An unknown id is not an error: nothing is written and the result
        is a success.
        """
        updated = [s for s in self._sessions if s.id != session_id]
        if len(updated) == len(self._sessions):
            logger.debug("Delete requested for unknown session", extra={"session_id": session_id})
            return OperationResult(success=True)

        failure = self._persist(updated, operation="delete")
        if failure is not None:
            error_type, error = failure
            return OperationResult(success=False, error_type=error_type, error=error)

        self._sessions = updated
        logger.info(
            "Deleted swim session",
            extra={"session_id": session_id, "total_sessions": len(updated)}
        )
        return OperationResult(success=True)

    def import_sessions(
        self,
        sessions: Iterable[SwimSession],
        mode: Union[ImportMode, str] = ImportMode.MERGE,
    ) -> ImportResult:
        """
        Bring imported sessions into the store.

        merge: sessions whose id is already stored are dropped (the
        stored one wins); the rest are appended after the existing
        collection. Only the id is compared, not the content.

        replace: the collection becomes exactly the imported sessions.
        A batch that repeats an id is rejected, since it would break id
        uniqueness.
        """
        try:
            mode = ImportMode(mode)
        except ValueError:
            return ImportResult(
                success=False,
                error_type=ErrorType.VALIDATION_ERROR,
                error=f"Unknown import mode: {mode!r}",
            )

        incoming = list(sessions)

        if mode is ImportMode.REPLACE:
            duplicates = _duplicate_ids(incoming)
            if duplicates:
                return ImportResult(
                    success=False,
                    mode=mode,
                    error_type=ErrorType.VALIDATION_ERROR,
                    error=f"Import contains duplicate session ids: {', '.join(sorted(duplicates))}",
                )
            updated = incoming
            added = incoming
        else:
            seen = {s.id for s in self._sessions}
            added = []
            for session in incoming:
                if session.id in seen:
                    continue
                seen.add(session.id)
                added.append(session)
            updated = [*self._sessions, *added]

        failure = self._persist(updated, operation=f"import-{mode.value}")
        if failure is not None:
            error_type, error = failure
            return ImportResult(success=False, mode=mode, error_type=error_type, error=error)

        self._sessions = updated
        skipped = len(incoming) - len(added)
        logger.info(
            "Imported swim sessions",
            extra={
                "mode": mode.value,
                "imported": len(added),
                "skipped": skipped,
                "total_sessions": len(updated),
            }
        )
        return ImportResult(
            success=True,
            mode=mode,
            imported_count=len(added),
            skipped_count=skipped,
        )

    # -----------------------------------------------------------------------
    # Queries
    # -----------------------------------------------------------------------

    def sorted_sessions(self) -> tuple[SwimSession, ...]:
        """Sessions by date, most recent first. Unparseable dates sort last."""
        return tuple(sorted(self._sessions, key=_sort_key, reverse=True))

    def get_recent_sessions(self, count: int = 5) -> tuple[SwimSession, ...]:
        """The first `count` sessions in stored order."""
        if count <= 0:
            return ()
        return tuple(self._sessions[:count])

    def get_session(self, session_id: str) -> Optional[SwimSession]:
        for session in self._sessions:
            if session.id == session_id:
                return session
        return None

    def get_sessions_by_date_range(
        self,
        start: datetime,
        end: datetime,
    ) -> tuple[SwimSession, ...]:
        """Sessions dated within [start, end], inclusive. Naive bounds are UTC."""
        start = _as_aware(start)
        end = _as_aware(end)

        matched = []
        for session in self._sessions:
            try:
                logged_at = session.logged_at
            except ValueError:
                continue
            if start <= logged_at <= end:
                matched.append(session)
        return tuple(matched)

    def get_statistics(self) -> SessionStatistics:
        if not self._sessions:
            return SessionStatistics()

        count = len(self._sessions)
        total_distance = sum(s.distance for s in self._sessions)
        total_duration = sum(s.duration for s in self._sessions)
        total_pace = sum(s.pace for s in self._sessions)

        return SessionStatistics(
            total_sessions=count,
            total_distance=total_distance,
            total_duration=total_duration,
            average_pace=total_pace / count,
            average_distance=total_distance / count,
            average_duration=total_duration / count,
        )

    def check_storage_usage(self) -> StorageUsage:
        """
        Report how close storage is to its limits.

        Purely advisory. Saves are never refused because of this.

        Raises:
            StorageError: the backend could not be read
        """
        used = self._storage.usage_bytes()
        quota = self._storage.quota_bytes
        near_capacity = quota > 0 and used >= quota * self._warning_ratio
        too_many = len(self._sessions) > self._session_threshold

        if near_capacity or too_many:
            logger.info(
                "Storage approaching limits",
                extra={
                    "used_bytes": used,
                    "quota_bytes": quota,
                    "session_count": len(self._sessions),
                }
            )

        return StorageUsage(
            used_bytes=used,
            quota_bytes=quota,
            session_count=len(self._sessions),
            near_capacity=near_capacity,
            too_many_sessions=too_many,
        )

    # -----------------------------------------------------------------------
    # Private Methods
    # -----------------------------------------------------------------------

    def _unique_id(self) -> str:
        existing = {s.id for s in self._sessions}
        session_id = generate_session_id()
        while session_id in existing:
            session_id = generate_session_id()
        return session_id

    def _persist(
        self,
        sessions: list[SwimSession],
        operation: str,
    ) -> Optional[tuple[ErrorType, str]]:
        """
        Write the full collection to the storage slot.

        Returns None on success, or (error_type, message) on failure.
        """
        payload = json.dumps([s.to_dict() for s in sessions])

        try:
            self._storage.set_item(self._key, payload)
        except StorageQuotaExceededError as e:
            logger.error(
                "Storage quota exceeded",
                extra={
                    "operation": operation,
                    "session_count": len(sessions),
                    "payload_bytes": len(payload.encode("utf-8")),
                    "error": str(e),
                }
            )
            return ErrorType.QUOTA_EXCEEDED, str(e)
        except StorageError as e:
            logger.error(
                "Failed to persist swim sessions",
                extra={"operation": operation, "error": str(e)}
            )
            return ErrorType.STORAGE_ERROR, str(e)

        return None

    def _load(self) -> list[SwimSession]:
        """
        Read the storage slot.

        A missing or corrupt slot gives an empty collection; the problem
        is logged, never raised. Records that cannot be read are kept in
        discarded_records and named in a single warning, since the next
        write replaces the slot without them.
        """
        self._discarded = []

        try:
            stored = self._storage.get_item(self._key)
        except StorageError as e:
            logger.error(
                "Error loading swim sessions from storage",
                extra={"key": self._key, "error": str(e)}
            )
            return []

        if not stored:
            return []

        try:
            records = json.loads(stored)
        except json.JSONDecodeError as e:
            logger.error(
                "Stored swim sessions are not valid JSON",
                extra={"key": self._key, "error": str(e)}
            )
            return []

        if not isinstance(records, list):
            logger.error(
                "Stored swim sessions are not a list",
                extra={"key": self._key, "type": type(records).__name__}
            )
            return []

        sessions = []
        seen: set[str] = set()
        problems = []
        for index, record in enumerate(records):
            try:
                if not isinstance(record, dict):
                    raise SessionValidationError("Session record must be an object")
                upgraded = _upgrade_legacy(record)
                validate_record(upgraded)
                session = SwimSession.from_dict(upgraded)
                if session.id in seen:
                    raise SessionValidationError(f"Duplicate session id {session.id}")
            except SessionValidationError as e:
                self._discarded.append(record)
                problems.append({"index": index, "error": str(e)})
                continue
            seen.add(session.id)
            sessions.append(session)

        if problems:
            logger.warning(
                "Stored sessions could not be read and will be dropped on the next save",
                extra={"key": self._key, "discarded": problems}
            )

        logger.info(
            "Loaded swim sessions from storage",
            extra={"key": self._key, "count": len(sessions)}
        )
        return sessions


def _upgrade_legacy(record: dict[str, Any]) -> dict[str, Any]:
    """
    Convert a record written by the older schema.

    That schema had no pace field and stored duration in minutes.
    """
    if "pace" in record:
        return record

    upgraded = dict(record)
    minutes = record.get("duration")
    if isinstance(minutes, (int, float)) and not isinstance(minutes, bool):
        upgraded["duration"] = int(round(minutes * 60))
    upgraded["pace"] = calculate_pace(record.get("distance"), upgraded.get("duration"))
    return upgraded


def _duplicate_ids(sessions: list[SwimSession]) -> set[str]:
    seen: set[str] = set()
    duplicates: set[str] = set()
    for session in sessions:
        if session.id in seen:
            duplicates.add(session.id)
        seen.add(session.id)
    return duplicates


def _as_aware(moment: datetime) -> datetime:
    if moment.tzinfo is None:
        return moment.replace(tzinfo=timezone.utc)
    return moment


def _sort_key(session: SwimSession) -> datetime:
    try:
        return session.logged_at
    except ValueError:
        return datetime.min.replace(tzinfo=timezone.utc)
