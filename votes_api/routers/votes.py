from fastapi import APIRouter, Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from votes_api.database import get_db
from votes_api.dependencies import ArticlePaginationParams, PaginationParams, get_identity
from votes_api.identity import Identity
from votes_api.schemas import CommentCreate, VoteCreate
from votes_api.services import article_service, comment_service, vote_service

router = APIRouter(prefix="/api", tags=["votes"])


@router.get("/votos")
async def list_articles(
    pagination: ArticlePaginationParams = Depends(),
    db: AsyncSession = Depends(get_db),
):
    return await article_service.list_articles(
        db, pagination.page, pagination.limit, pagination.sort_by, pagination.order
    )


@router.put("/votar/{name}/masuno")
async def cast_vote(
    name: str,
    data: VoteCreate,
    db: AsyncSession = Depends(get_db),
    identity: Identity | None = Depends(get_identity),
):
    return await vote_service.cast_vote(db, name, data.user_id, identity)


@router.get("/votar/{name}/comentario")
async def list_comments(
    name: str,
    pagination: PaginationParams = Depends(),
    db: AsyncSession = Depends(get_db),
):
    return await comment_service.get_comments(db, name, pagination.page, pagination.limit)


@router.post("/votar/{name}/comentario", status_code=201)
async def add_comment(
    name: str,
    data: CommentCreate,
    request: Request,
    db: AsyncSession = Depends(get_db),
    identity: Identity | None = Depends(get_identity),
):
    origin_ip = request.client.host if request.client else None
    return await comment_service.add_comment(db, name, data, origin_ip, identity)
