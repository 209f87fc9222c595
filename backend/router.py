from fastapi import APIRouter

# Compose modular sub-routers
from api import (
    hackathons_router,
    users_router,
    feedback_router,
)


router = APIRouter()

# main.py applies `/api` prefix
router.include_router(hackathons_router)
router.include_router(users_router)
router.include_router(feedback_router)


@router.get("/health")
def health():
    return {"status": "ok"}
