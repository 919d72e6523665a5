from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from votes_api.database import get_db
from votes_api.services import article_service

router = APIRouter(prefix="/api/articulo", tags=["articles"])


@router.get("/{name}")
async def get_article(name: str, db: AsyncSession = Depends(get_db)):
    return await article_service.get_article(db, name)


@router.get("/{name}/estado-usuario/{user_id}")
async def get_user_status(name: str, user_id: str, db: AsyncSession = Depends(get_db)):
    return await article_service.get_user_status(db, name, user_id)
