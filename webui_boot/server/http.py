import logging
import os

from fastapi import FastAPI

from ..config import configure_logging
from ..models import HealthStatus

configure_logging()
logger = logging.getLogger(__name__)


def create_app(version: str | None = None) -> FastAPI:
    """Minimal application exposing the readiness contract probers rely on."""
    app = FastAPI()
    build_version = version or os.environ.get("WEBUI_BUILD_VERSION")

    @app.get("/health", response_model=HealthStatus, response_model_exclude_none=True)
    async def health() -> HealthStatus:
        return HealthStatus(status=True, version=build_version)

    return app
