# API routes
from src.api.routes.queue import router as queue_router
from src.api.routes.score import router as score_router

__all__ = [
    "queue_router",
    "score_router",
]
