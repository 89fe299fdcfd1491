"""duckprom API routers package."""

from duckprom.api.routers.health import router as health_router
from duckprom.api.routers.metrics import router as metrics_router
from duckprom.api.routers.remote import router as remote_router

__all__ = [
    "health_router",
    "metrics_router",
    "remote_router",
]
