"""
Swim session API endpoints.

Logging, listing and deleting swims. Every write goes through the
shared SessionStore, which persists the full history before answering,
so a 201 means the swim is on disk.
"""

import logging
from datetime import datetime, timezone
from typing import Optional

from fastapi import APIRouter, HTTPException, Query, status
from pydantic import BaseModel, Field

from ...core.sessions.models import SwimSession
from ..dependencies import SessionStoreDep
from ..errors import raise_for_failure

logger = logging.getLogger(__name__)

router = APIRouter()


# ---------------------------------------------------------------------------
# Request/Response Models
# ---------------------------------------------------------------------------

class LogSessionRequest(BaseModel):
    """A swim entered in the quick-log form."""
    distance: int = Field(gt=0, description="Distance in meters", examples=[1500])
    duration: str = Field(
        min_length=1,
        max_length=16,
        description="Duration as MM:SS, HH:MM:SS or whole minutes",
        examples=["30:00"],
    )
    notes: Optional[str] = Field(None, max_length=2000, description="How did it feel?")


class SessionItem(BaseModel):
    """A logged swim."""
    id: str = Field(description="Session identifier")
    distance: float = Field(description="Distance in meters")
    duration: float = Field(description="Duration in seconds")
    pace: float = Field(description="Seconds per 100m")
    date: str = Field(description="When the swim was logged (ISO format)")
    notes: Optional[str] = Field(None, description="Free-text notes")
    pace_display: str = Field(description="Pace formatted as M:SS/100m")
    duration_display: str = Field(description="Duration formatted as H:MM:SS or M:SS")

    @classmethod
    def from_session(cls, session: SwimSession) -> "SessionItem":
        return cls(
            id=session.id,
            distance=session.distance,
            duration=session.duration,
            pace=session.pace,
            date=session.date,
            notes=session.notes,
            pace_display=session.pace_display,
            duration_display=session.duration_display,
        )


class SessionListResponse(BaseModel):
    sessions: list[SessionItem] = Field(description="Sessions, most recent first")
    total: int = Field(description="Number of sessions returned")


def _list_response(sessions) -> SessionListResponse:
    items = [SessionItem.from_session(s) for s in sessions]
    return SessionListResponse(sessions=items, total=len(items))


def _as_utc(moment: datetime) -> datetime:
    if moment.tzinfo is None:
        return moment.replace(tzinfo=timezone.utc)
    return moment


# ---------------------------------------------------------------------------
# Endpoints
# ---------------------------------------------------------------------------

@router.get(
    "",
    response_model=SessionListResponse,
    summary="List all sessions",
    description="Every stored session, ordered by date with the most recent first",
)
async def list_sessions(store: SessionStoreDep) -> SessionListResponse:
    return _list_response(store.sorted_sessions())


@router.post(
    "",
    response_model=SessionItem,
    status_code=status.HTTP_201_CREATED,
    summary="Log a swim",
)
async def log_session(
    request: LogSessionRequest,
    store: SessionStoreDep,
) -> SessionItem:
    """
    Log a swim.

    The duration text is parsed into seconds and the pace is derived
    from it. If storage is full the swim is not saved and the response
    is 507; export and delete old sessions to make room.
    """
    logger.info(
        "Logging swim",
        extra={"distance": request.distance, "duration": request.duration}
    )

    result = store.log_session(
        distance=request.distance,
        duration_text=request.duration,
        notes=request.notes,
    )
    if not result.success:
        raise_for_failure(result.error_type, result.error, "save session")

    return SessionItem.from_session(result.session)


@router.get(
    "/recent",
    response_model=SessionListResponse,
    summary="Most recently logged sessions",
)
async def recent_sessions(
    store: SessionStoreDep,
    count: int = Query(default=5, ge=1, le=100, description="How many sessions to return"),
) -> SessionListResponse:
    return _list_response(store.get_recent_sessions(count))


@router.get(
    "/range",
    response_model=SessionListResponse,
    summary="Sessions within a date range",
    description="Sessions dated between start and end, both inclusive. Times without an offset are UTC.",
)
async def sessions_in_range(
    store: SessionStoreDep,
    start: datetime = Query(description="Range start (ISO format)"),
    end: datetime = Query(description="Range end (ISO format)"),
) -> SessionListResponse:
    start, end = _as_utc(start), _as_utc(end)
    if end < start:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Range end must not be before range start",
        )
    return _list_response(store.get_sessions_by_date_range(start, end))


@router.get(
    "/{session_id}",
    response_model=SessionItem,
    summary="Get one session",
)
async def get_session(session_id: str, store: SessionStoreDep) -> SessionItem:
    session = store.get_session(session_id)
    if session is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Session not found",
        )
    return SessionItem.from_session(session)


@router.delete(
    "/{session_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Delete a session",
    description="Deleting an unknown session is not an error.",
)
async def delete_session(session_id: str, store: SessionStoreDep) -> None:
    logger.info("Delete session requested", extra={"session_id": session_id})

    result = store.delete_session(session_id)
    if not result.success:
        raise_for_failure(result.error_type, result.error, "delete session")
