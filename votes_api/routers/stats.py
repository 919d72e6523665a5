from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from votes_api.database import get_db
from votes_api.services import article_service

router = APIRouter(prefix="/api/estadisticas", tags=["stats"])


@router.get("")
async def get_stats(db: AsyncSession = Depends(get_db)):
    return await article_service.get_stats(db)
