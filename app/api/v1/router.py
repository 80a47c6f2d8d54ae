from fastapi import APIRouter

from app.api.v1.endpoints import posts, programs, uploads, users
from app.core.config import settings

api_router = APIRouter()

api_router.include_router(posts.router, prefix="/posts", tags=["Posts"])
api_router.include_router(users.router, prefix="/users", tags=["Users"])
api_router.include_router(programs.router, prefix="/programs", tags=["Programs"])

# Local storage only: production uploads go straight to Supabase
if not settings.PRODUCTION:
    api_router.include_router(uploads.router, prefix="/uploads", tags=["Uploads"])
