"""
Comment service — one comment per user per article.

Comments cannot be edited or deleted through the API.  The uniqueness
rule is enforced by ``article_store.append_comment_if_absent``; this
module only validates, orchestrates and shapes the responses.
"""
import logging
import time

from sqlalchemy.ext.asyncio import AsyncSession

from votes_api.errors import AlreadyCommented, InternalError, NotFound
from votes_api.identity import Identity
from votes_api.responses import isoformat, pagination, utc_now, utc_timestamp
from votes_api.schemas import CommentCreate, NewComment
from votes_api.services import article_store
from votes_api.services.article_service import comment_to_dict, require_article

logger = logging.getLogger(__name__)


async def add_comment(
    db: AsyncSession,
    name: str,
    data: CommentCreate,
    origin_ip: str | None = None,
    identity: Identity | None = None,
) -> dict:
    """
    Store a comment from ``data.user_id`` on the article *name*.

    The verified *identity*, when present, is only logged: deduplication
    is keyed on the client-supplied ``userId``.
    """
    await require_article(db, name)

    comment = NewComment(
        id=int(time.time() * 1000),
        author=data.author,
        text=data.text,
        user_id=data.user_id,
        submitted_at=utc_now(),
        origin_ip=origin_ip,
    )
    result = await article_store.append_comment_if_absent(db, name, comment)

    if result.duplicate:
        raise AlreadyCommented()
    if result.matched == 0:
        raise NotFound("Artículo no encontrado para actualizar")
    if result.modified == 0:
        raise InternalError("No se pudo agregar el comentario")

    logger.info(
        "Comment stored: article=%s user=%s verified=%s",
        name,
        data.user_id,
        identity.uid if identity else None,
    )
    return {
        "mensaje": f"Comentario registrado para {name}",
        "comentario": {
            "id": comment.id,
            "autor": comment.author,
            "texto": comment.text,
            "userId": comment.user_id,
            "fecha": isoformat(comment.submitted_at),
            "ip": comment.origin_ip,
        },
        "articulo": name,
        "resultado": {"matched": result.matched, "modified": result.modified},
        "timestamp": utc_timestamp(),
    }


async def get_comments(db: AsyncSession, name: str, page: int = 1, limit: int = 20) -> dict:
    """Return one page of the article's comments, newest first."""
    article = await require_article(db, name)
    comments, total = await article_store.list_comments(
        db, article.id, offset=(page - 1) * limit, limit=limit
    )
    return {
        "mensaje": f"Comentarios del artículo {name}",
        "articulo": name,
        "comentarios": [comment_to_dict(c) for c in comments],
        "paginacion": pagination(total, page, limit),
        "estadisticas": {
            "totalComentarios": total,
            "totalVotos": article.vote_count or 0,
            "ultimaActualizacion": isoformat(article.last_updated_at),
        },
        "timestamp": utc_timestamp(),
    }
