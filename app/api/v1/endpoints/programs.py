"""Organization hierarchy for onboarding forms."""

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.database import get_db
from app.schemas import ProgramOptionsResponse
from app.services.user_service import user_service

router = APIRouter()


@router.get("/", response_model=ProgramOptionsResponse)
async def get_program_options(db: AsyncSession = Depends(get_db)):
    """All campuses, colleges and programs (public)."""
    return await user_service.get_program_options(db)
