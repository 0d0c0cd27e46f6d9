"""
Export and import of the session history.

JSON export is the backup format: a small envelope (version, export
date, session count) around the sessions exactly as stored, so an
import gives back equal sessions. CSV export is for spreadsheets and
is one-way.

Import only checks the file's shape and that every session carries its
required fields. Deduplication and merge/replace handling belong to
SessionStore.import_sessions.
"""

import json
import logging
from dataclasses import dataclass
from datetime import date, datetime
from typing import Any, Iterable, Optional, Union

from .models import (
    SessionValidationError,
    SwimSession,
    parse_iso,
    to_iso,
    utc_now_iso,
    validate_record,
)

logger = logging.getLogger(__name__)

EXPORT_VERSION = "1.0"
JSON_MEDIA_TYPE = "application/json"
CSV_MEDIA_TYPE = "text/csv"

CSV_HEADERS = (
    "Date",
    "Distance (m)",
    "Duration (seconds)",
    "Pace (sec/100m)",
    "Notes",
)


class TransferError(ValueError):
    """Base class for import failures."""
    pass


class ImportFormatError(TransferError):
    """The file is not a session export."""
    pass


class ImportValidationError(TransferError):
    """The file is an export but a session in it is incomplete."""

    def __init__(self, message: str, index: Optional[int] = None) -> None:
        self.index = index
        super().__init__(message)


@dataclass(frozen=True)
class ImportedData:
    """Sessions read from an export file, not yet applied to the store."""
    sessions: list[SwimSession]
    version: str = EXPORT_VERSION


# ---------------------------------------------------------------------------
# Export
# ---------------------------------------------------------------------------

def export_to_json(
    sessions: Iterable[SwimSession],
    export_date: Optional[datetime] = None,
) -> str:
    """Serialize sessions into the versioned export document."""
    records = [s.to_dict() for s in sessions]
    document = {
        "version": EXPORT_VERSION,
        "exportDate": to_iso(export_date) if export_date else utc_now_iso(),
        "sessionCount": len(records),
        "sessions": records,
    }
    return json.dumps(document, indent=2, ensure_ascii=False)


def export_to_csv(sessions: Iterable[SwimSession]) -> str:
    """
    Render sessions as CSV, one row per session.

    Notes are always quoted with inner quotes doubled; the other
    columns never contain commas or quotes.
    """
    lines = [",".join(CSV_HEADERS)]
    for session in sessions:
        lines.append(",".join([
            _csv_date(session.date),
            _format_number(session.distance),
            _format_number(session.duration),
            f"{session.pace:.2f}",
            quote_csv_field(session.notes or ""),
        ]))
    return "\n".join(lines)


def quote_csv_field(value: str) -> str:
    """Wrap a value in double quotes, doubling any quotes inside it."""
    return '"' + value.replace('"', '""') + '"'


def export_filename(extension: str, on: Optional[date] = None) -> str:
    """swimdash-export-YYYY-MM-DD.<extension>"""
    day = on or datetime.now().date()
    return f"swimdash-export-{day.isoformat()}.{extension.lstrip('.')}"


# ---------------------------------------------------------------------------
# Import
# ---------------------------------------------------------------------------

def import_from_json(file_content: Union[str, bytes]) -> ImportedData:
    """
    Parse an export document.

    Raises:
        ImportFormatError: content is not JSON or has no sessions list
        ImportValidationError: a session lacks a required field
    """
    if isinstance(file_content, bytes):
        try:
            file_content = file_content.decode("utf-8-sig")
        except UnicodeDecodeError as e:
            raise ImportFormatError(f"Export file is not UTF-8 text: {e}")

    try:
        data = json.loads(file_content)
    except json.JSONDecodeError as e:
        logger.warning("Import file is not valid JSON", extra={"error": str(e)})
        raise ImportFormatError(f"Invalid export file format: {e}")

    if not isinstance(data, dict) or not isinstance(data.get("sessions"), list):
        raise ImportFormatError("Invalid export file format")

    sessions = []
    for index, record in enumerate(data["sessions"]):
        try:
            validate_record(record)
        except SessionValidationError as e:
            logger.warning(
                "Import file contains invalid session",
                extra={"index": index, "error": str(e)}
            )
            raise ImportValidationError(
                f"Export file contains invalid session data (session {index + 1}): {e}",
                index=index,
            )
        sessions.append(SwimSession.from_dict(record))

    version = data.get("version") or EXPORT_VERSION

    logger.info(
        "Read export file",
        extra={"version": version, "session_count": len(sessions)}
    )
    return ImportedData(sessions=sessions, version=str(version))


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _csv_date(value: Any) -> str:
    """Normalize a stored date to ISO-8601 UTC; leave unparseable values as they are."""
    try:
        return to_iso(parse_iso(value))
    except ValueError:
        return str(value)


def _format_number(value: Any) -> str:
    """Whole numbers without a trailing .0, everything else as-is."""
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)
