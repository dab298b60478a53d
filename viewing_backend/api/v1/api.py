from fastapi import APIRouter

from viewing_backend.api.v1.endpoints import analytics, events, participants, sessions

# Create the main API router
router = APIRouter()

router.include_router(participants.router, prefix="/participants", tags=["participants"])
router.include_router(sessions.router, prefix="/sessions", tags=["sessions"])
router.include_router(events.router, prefix="/events", tags=["events"])
router.include_router(analytics.router, prefix="/analytics", tags=["analytics"])
