"""
Swim session tracking.

Contains the session store, domain models, export/import transforms
and the time-bucketed aggregates behind the dashboard views.
"""

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
    format_duration,
    format_pace,
    parse_duration,
)
from .store import STORAGE_KEY, SessionStore
from .transfer import (
    ImportedData,
    ImportFormatError,
    ImportValidationError,
    TransferError,
    export_to_csv,
    export_to_json,
    import_from_json,
)

__all__ = [
    "ErrorType",
    "ImportMode",
    "ImportResult",
    "NewSession",
    "OperationResult",
    "SaveResult",
    "SessionStatistics",
    "SessionValidationError",
    "StorageUsage",
    "SwimSession",
    "calculate_pace",
    "format_duration",
    "format_pace",
    "parse_duration",
    "STORAGE_KEY",
    "SessionStore",
    "ImportedData",
    "ImportFormatError",
    "ImportValidationError",
    "TransferError",
    "export_to_csv",
    "export_to_json",
    "import_from_json",
]
