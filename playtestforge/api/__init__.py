from playtestforge.api.cards import router as cards_router
from playtestforge.api.forum import router as forum_router
from playtestforge.api.health import router as health_router
from playtestforge.api.projects import router as projects_router
from playtestforge.api.reviews import router as reviews_router

__all__ = [
    "cards_router",
    "forum_router",
    "health_router",
    "projects_router",
    "reviews_router",
]
