from fastapi import APIRouter

# Subrouters are imported and re-exported for convenience
from .hackathons import router as hackathons_router  # noqa: F401
from .users import router as users_router  # noqa: F401
from .feedback import router as feedback_router  # noqa: F401

__all__ = [
    "APIRouter",
    "hackathons_router",
    "users_router",
    "feedback_router",
]
