from fastapi import APIRouter

from hellogt.api.v1.session import router as session_router
from hellogt.api.v1.matching import router as matching_router
from hellogt.api.v1.notifications import router as notifications_router
from hellogt.api.v1.events import router as events_router
from hellogt.api.v1.saved import router as saved_router

api_router = APIRouter()

# Include all route modules
api_router.include_router(session_router)
api_router.include_router(matching_router)
api_router.include_router(notifications_router)
api_router.include_router(events_router)
api_router.include_router(saved_router)
