"""Liveness endpoint for the parameter service."""
import time
from datetime import datetime, timezone

from fastapi import APIRouter

from gkedeploy import __version__, config
from gkedeploy.schemas import HealthResponse

router = APIRouter()

_started_at = time.monotonic()


@router.get("/health", response_model=HealthResponse)
async def health_check():
    """Report version, uptime and the settings that shape resolution."""
    return HealthResponse(
        status="ok",
        version=__version__,
        uptime_seconds=int(time.monotonic() - _started_at),
        now=datetime.now(timezone.utc),
        label_domain=config.label_domain(),
        digest_workers=config.digest_workers(),
    )
