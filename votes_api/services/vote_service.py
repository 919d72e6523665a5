import logging

from sqlalchemy.ext.asyncio import AsyncSession

from votes_api.errors import AlreadyVoted
from votes_api.identity import Identity
from votes_api.responses import utc_timestamp
from votes_api.services import article_store
from votes_api.services.article_service import require_article

logger = logging.getLogger(__name__)


async def cast_vote(
    db: AsyncSession,
    name: str,
    user_id: str,
    identity: Identity | None = None,
) -> dict:
    """
    Register one vote from *user_id* for the article *name*.

    The membership check only provides a fast 409 for the common case.
    ``increment_vote_if_absent`` re-checks atomically and raises
    ``AlreadyVoted`` itself when a concurrent request won the race.
    """
    article = await require_article(db, name)
    if await article_store.has_voted(db, article.id, user_id):
        raise AlreadyVoted()

    updated = await article_store.increment_vote_if_absent(db, name, user_id)
    logger.info(
        "Vote stored: article=%s user=%s total=%d verified=%s",
        name,
        user_id,
        updated.vote_count,
        identity.uid if identity else None,
    )
    return {
        "mensaje": f"Voto registrado para {name}",
        "totalVotos": updated.vote_count,
        "articulo": name,
        "yaVotaste": True,
        "timestamp": utc_timestamp(),
    }
