from tubestats.api.routes.channels import router as channels_router
from tubestats.api.routes.health import router as health_router
from tubestats.api.routes.refresh import router as refresh_router
from tubestats.api.routes.runs import router as runs_router
from tubestats.api.routes.statistics import router as statistics_router
from tubestats.api.routes.videos import router as videos_router

__all__ = [
    "channels_router",
    "health_router",
    "refresh_router",
    "runs_router",
    "statistics_router",
    "videos_router",
]
