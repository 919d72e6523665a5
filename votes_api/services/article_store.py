"""
Article store gateway — the only module that talks to the store.

Design notes
------------
- The per-user "exactly once" rules are enforced by the store itself, not
  by a read in Python followed by a write.  ``article_votes`` and
  ``comments`` both use ``(article_id, user_id)`` as primary key, so a
  second vote or comment from the same user fails inside the same
  transaction that stamps the article row.  Two concurrent requests
  therefore yield exactly one success regardless of timing.
- The article row is updated *before* the dependent insert.  On
  PostgreSQL this takes the row lock first, so concurrent writers for the
  same article queue up instead of deadlocking.
- When the insert is rejected the session is rolled back, which also
  undoes the counter increment / timestamp issued earlier in the
  transaction.
- Functions flush but do not commit; the transaction boundary is owned by
  the ``get_db`` dependency in the router layer.
"""
import logging
from datetime import datetime

from sqlalchemy import asc, desc, exists, func, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from votes_api.errors import AlreadyVoted, NotFound
from votes_api.models import Article, ArticleVote, Comment
from votes_api.responses import utc_now
from votes_api.schemas import NewComment, WriteResult

logger = logging.getLogger(__name__)

# Public sort keys (as exposed by the listing endpoint) -> columns.
SORTABLE_FIELDS = {
    "nombre": Article.name,
    "titulo": Article.title,
    "voto": Article.vote_count,
    "fechaCreacion": Article.created_at,
    "ultimaActualizacion": Article.last_updated_at,
}
DEFAULT_SORT_FIELD = "nombre"


def _resolve_sort_column(sort_field: str):
    """Unknown sort keys fall back to the article name."""
    return SORTABLE_FIELDS.get(sort_field, SORTABLE_FIELDS[DEFAULT_SORT_FIELD])


# ---------------------------------------------------------------------------
# Reads
# ---------------------------------------------------------------------------

async def find_by_name(
    db: AsyncSession, name: str, with_comments: bool = False
) -> Article | None:
    q = select(Article).where(Article.name == name)
    if with_comments:
        q = q.options(selectinload(Article.comments))
    result = await db.execute(q.execution_options(populate_existing=True))
    return result.scalar_one_or_none()


async def count_comments(db: AsyncSession, article_id: int) -> int:
    q = select(func.count()).select_from(Comment).where(Comment.article_id == article_id)
    return (await db.execute(q)).scalar_one()


async def list_comments(
    db: AsyncSession, article_id: int, offset: int, limit: int
) -> tuple[list[Comment], int]:
    """Return one page of comments, newest first, plus the total count."""
    total = await count_comments(db, article_id)
    q = (
        select(Comment)
        .where(Comment.article_id == article_id)
        .order_by(desc(Comment.submitted_at), desc(Comment.id))
        .offset(offset)
        .limit(limit)
    )
    result = await db.execute(q)
    return list(result.scalars().all()), total


async def list_articles(
    db: AsyncSession,
    sort_field: str = DEFAULT_SORT_FIELD,
    sort_direction: str = "asc",
    offset: int = 0,
    limit: int = 10,
) -> tuple[list[tuple[Article, int]], int]:
    """
    Return ``([(article, comment_count), ...], total)`` for one page.

    The comment count is computed with a correlated subquery so the page
    costs a single SELECT regardless of its size.
    """
    total: int = (await db.execute(select(func.count()).select_from(Article))).scalar_one()

    comment_count = (
        select(func.count())
        .select_from(Comment)
        .where(Comment.article_id == Article.id)
        .correlate(Article)
        .scalar_subquery()
    )
    sort_col = _resolve_sort_column(sort_field)
    order_expr = desc(sort_col) if sort_direction == "desc" else asc(sort_col)
    q = (
        select(Article, comment_count)
        .order_by(order_expr, asc(Article.name))
        .offset(offset)
        .limit(limit)
    )
    rows = (await db.execute(q)).all()
    return [(article, count) for article, count in rows], total


async def user_status(db: AsyncSession, article_id: int, user_id: str) -> tuple[bool, bool]:
    """Return ``(has_voted, has_commented)`` for *user_id* on the article."""
    voted = exists().where(
        ArticleVote.article_id == article_id, ArticleVote.user_id == user_id
    )
    commented = exists().where(
        Comment.article_id == article_id, Comment.user_id == user_id
    )
    row = (await db.execute(select(voted, commented))).one()
    return bool(row[0]), bool(row[1])


async def has_voted(db: AsyncSession, article_id: int, user_id: str) -> bool:
    q = select(
        exists().where(ArticleVote.article_id == article_id, ArticleVote.user_id == user_id)
    )
    return bool((await db.execute(q)).scalar())


async def aggregate_stats(db: AsyncSession) -> dict:
    """Vote and comment totals across every article in one statement."""
    total_comments = select(func.count()).select_from(Comment).scalar_subquery()
    q = select(
        func.coalesce(func.sum(Article.vote_count), 0),
        func.count(Article.id),
        func.avg(Article.vote_count),
        total_comments,
    )
    total_votes, total_articles, average, comments = (await db.execute(q)).one()
    return {
        "totalVotos": int(total_votes),
        "totalArticulos": int(total_articles),
        "promedioVotos": float(average) if average is not None else 0.0,
        "totalComentarios": int(comments or 0),
    }


# ---------------------------------------------------------------------------
# Conditional writes
# ---------------------------------------------------------------------------

async def _touch_article(db: AsyncSession, name: str, now: datetime, **values) -> int | None:
    """Stamp ``last_updated_at`` (plus *values*) and return the article id."""
    stmt = (
        update(Article)
        .where(Article.name == name)
        .values(last_updated_at=now, **values)
        .returning(Article.id)
        .execution_options(synchronize_session=False)
    )
    return (await db.execute(stmt)).scalar_one_or_none()


async def append_comment_if_absent(
    db: AsyncSession, name: str, comment: NewComment
) -> WriteResult:
    """
    Store *comment* unless its author already commented on the article.

    ``matched`` is 0 when the article does not exist.  A comment rejected
    by the ``(article_id, user_id)`` key is reported as ``duplicate`` with
    ``modified`` 0, and nothing is written.
    """
    article_id = await _touch_article(db, name, comment.submitted_at)
    if article_id is None:
        return WriteResult(matched=0, modified=0)

    db.add(
        Comment(
            article_id=article_id,
            user_id=comment.user_id,
            id=comment.id,
            author=comment.author,
            text=comment.text,
            submitted_at=comment.submitted_at,
            origin_ip=comment.origin_ip,
        )
    )
    try:
        await db.flush()
    except IntegrityError:
        await db.rollback()
        logger.info("Duplicate comment rejected: article=%s user=%s", name, comment.user_id)
        return WriteResult(matched=1, modified=0, duplicate=True)
    return WriteResult(matched=1, modified=1)


async def increment_vote_if_absent(db: AsyncSession, name: str, user_id: str) -> Article:
    """
    Count one vote from *user_id* and return the updated article.

    Raises ``NotFound`` when the article does not exist and
    ``AlreadyVoted`` when the store already holds a vote from this user,
    including when that vote was committed by a concurrent request after
    the caller's own membership check.
    """
    now = utc_now()
    article_id = await _touch_article(db, name, now, vote_count=Article.vote_count + 1)
    if article_id is None:
        raise NotFound()

    db.add(ArticleVote(article_id=article_id, user_id=user_id, voted_at=now))
    try:
        await db.flush()
    except IntegrityError:
        await db.rollback()
        logger.info("Duplicate vote rejected: article=%s user=%s", name, user_id)
        raise AlreadyVoted()

    article = await find_by_name(db, name)
    if article is None:  # pragma: no cover
        raise NotFound()
    return article
