"""
Article service — read-side handlers for the Article aggregate.

Articles are created out-of-band (see ``scripts/seed.py``); this module
only fetches, lists and summarises them.  Response dicts use the public
field names of the API (``nombre``, ``voto``, ``comentarios`` ...).
"""
from sqlalchemy.ext.asyncio import AsyncSession

from votes_api.errors import NotFound
from votes_api.models import Article, Comment
from votes_api.responses import isoformat, pagination, utc_timestamp
from votes_api.services import article_store

# ---------------------------------------------------------------------------
# Serialisation helpers
# ---------------------------------------------------------------------------


def comment_to_dict(comment: Comment) -> dict:
    return {
        "id": comment.id,
        "autor": comment.author,
        "texto": comment.text,
        "userId": comment.user_id,
        "fecha": isoformat(comment.submitted_at),
        "ip": comment.origin_ip,
    }


def _article_to_dict(article: Article, total_comments: int) -> dict:
    """Serialise an Article ORM instance to a plain dict (list view)."""
    return {
        "nombre": article.name,
        "titulo": article.title,
        "img": article.image,
        "contenido": article.content,
        "voto": article.vote_count or 0,
        "totalComentarios": total_comments,
        "ultimaActualizacion": isoformat(article.last_updated_at),
        "fechaCreacion": isoformat(article.created_at),
    }


def _article_detail_to_dict(article: Article) -> dict:
    """Serialise an Article with its comments loaded (detail view)."""
    data = _article_to_dict(article, len(article.comments))
    data["comentarios"] = [comment_to_dict(c) for c in article.comments]
    return data


async def require_article(db: AsyncSession, name: str, with_comments: bool = False) -> Article:
    article = await article_store.find_by_name(db, name, with_comments=with_comments)
    if article is None:
        raise NotFound()
    return article


# ---------------------------------------------------------------------------
# Public service functions
# ---------------------------------------------------------------------------

async def get_article(db: AsyncSession, name: str) -> dict:
    article = await require_article(db, name, with_comments=True)
    return {
        "mensaje": f"Información del artículo {name}",
        "articulo": _article_detail_to_dict(article),
        "timestamp": utc_timestamp(),
    }


async def get_user_status(db: AsyncSession, name: str, user_id: str) -> dict:
    article = await require_article(db, name)
    voted, commented = await article_store.user_status(db, article.id, user_id)
    return {
        "mensaje": f"Estado del usuario para {name}",
        "articulo": name,
        "userId": user_id,
        "yaVoto": voted,
        "yaComento": commented,
        "timestamp": utc_timestamp(),
    }


async def list_articles(
    db: AsyncSession,
    page: int = 1,
    limit: int = 10,
    sort_by: str = article_store.DEFAULT_SORT_FIELD,
    sort_order: str = "asc",
) -> dict:
    rows, total = await article_store.list_articles(
        db,
        sort_field=sort_by,
        sort_direction=sort_order,
        offset=(page - 1) * limit,
        limit=limit,
    )
    return {
        "mensaje": "Artículos obtenidos de la base de datos",
        "datos": [_article_to_dict(article, count) for article, count in rows],
        "paginacion": pagination(total, page, limit),
        "timestamp": utc_timestamp(),
    }


async def get_stats(db: AsyncSession) -> dict:
    return {
        "mensaje": "Estadísticas del sistema",
        "estadisticas": await article_store.aggregate_stats(db),
        "timestamp": utc_timestamp(),
    }
