"""
Health endpoints for the dashboard and local process supervisors.

/health answers as long as the process is up. /health/ready also reads
the configuration and the storage backend; the frontend polls it on
startup so it can tell the swimmer their history is unreadable instead
of showing an empty list.
"""

import logging
from typing import Any, Optional

from fastapi import APIRouter, Response, status
from pydantic import BaseModel, Field

from ... import __version__
from ...config.settings import Settings
from ...core.sessions.store import SessionStore
from ...infrastructure.storage.client import StorageError
from ..dependencies import SessionStoreDep, SettingsDep

logger = logging.getLogger(__name__)

router = APIRouter()


class LivenessResponse(BaseModel):
    status: str = Field(description="Always 'ok' when the process answers")
    version: str
    details: dict[str, Any] = Field(default_factory=dict)


class ComponentStatus(BaseModel):
    """Result of checking one dependency."""
    name: str
    ok: bool
    message: Optional[str] = Field(None, description="Failure reason, or an advisory note")


class ReadinessResponse(BaseModel):
    ready: bool
    version: str
    components: list[ComponentStatus]


def _check_configuration(settings: Settings) -> ComponentStatus:
    problems = settings.validate_required_fields()
    return ComponentStatus(
        name="configuration",
        ok=not problems,
        message="; ".join(problems) or None,
    )


def _check_storage(store: SessionStore) -> ComponentStatus:
    try:
        usage = store.check_storage_usage()
    except StorageError as e:
        logger.error("Storage unreadable during readiness check", extra={"error": str(e)})
        return ComponentStatus(name="storage", ok=False, message=str(e))

    # A nearly full store is still ready; the note tells the swimmer to export
    return ComponentStatus(name="storage", ok=True, message=usage.recommendation)


@router.get(
    "",
    response_model=LivenessResponse,
    summary="Liveness",
    description="200 whenever the process is running. Storage is not touched.",
)
async def liveness(settings: SettingsDep) -> LivenessResponse:
    return LivenessResponse(
        status="ok",
        version=__version__,
        details={"storage_mock_mode": settings.storage_mock_mode},
    )


@router.get(
    "/ready",
    response_model=ReadinessResponse,
    summary="Readiness",
    responses={503: {"description": "A component is not usable", "model": ReadinessResponse}},
)
async def readiness(
    response: Response,
    settings: SettingsDep,
    store: SessionStoreDep,
) -> ReadinessResponse:
    """200 when configuration and storage are both usable, 503 otherwise."""
    components = [_check_configuration(settings), _check_storage(store)]
    ready = all(component.ok for component in components)

    if not ready:
        response.status_code = status.HTTP_503_SERVICE_UNAVAILABLE
        logger.warning(
            "Not ready",
            extra={"failed": [c.name for c in components if not c.ok]}
        )

    return ReadinessResponse(ready=ready, version=__version__, components=components)
