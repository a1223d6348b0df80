"""gkedeploy parameter service - FastAPI application"""
import logging

from fastapi import FastAPI, Response
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest

from gkedeploy import __version__, config
from gkedeploy.api import health, params
from gkedeploy.middleware import CorrelationIdFilter, CorrelationIdMiddleware

logging.basicConfig(
    level=config.log_level(),
    format="%(asctime)s - %(name)s - %(levelname)s - [%(correlation_id)s] - %(message)s"
)
for handler in logging.getLogger().handlers:
    handler.addFilter(CorrelationIdFilter())

logger = logging.getLogger(__name__)

app = FastAPI(
    title="gkedeploy",
    description="Resolves and validates GKE deployment stage parameters",
    version=__version__,
)

app.add_middleware(CorrelationIdMiddleware)

app.include_router(health.router, prefix="/api/v1", tags=["Health"])
app.include_router(params.router, prefix="/api/v1", tags=["Params"])


@app.get("/metrics")
async def metrics():
    """Prometheus metrics endpoint (validation outcomes, digest lookups)."""
    return Response(generate_latest(), media_type=CONTENT_TYPE_LATEST)


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
