from fastapi import APIRouter

from swipematch.api.v1.matching import router as matching_router
from swipematch.api.v1.chat import router as chat_router
from swipematch.api.v1.admin import router as admin_router

api_router = APIRouter()

# Include all route modules
api_router.include_router(matching_router)
api_router.include_router(chat_router)
api_router.include_router(admin_router)
