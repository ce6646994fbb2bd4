# API Routes
from .tracking_routes import router as tracking_router

__all__ = [
    "tracking_router",
]
