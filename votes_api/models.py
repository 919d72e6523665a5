from __future__ import annotations

from datetime import datetime
from typing import List, Optional

from sqlalchemy import (
    BigInteger,
    CheckConstraint,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    func,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from votes_api.database import Base

AUTHOR_MAX_LENGTH = 50
TEXT_MAX_LENGTH = 500


# ---------------------------------------------------------------------------
# Article
# ---------------------------------------------------------------------------
class Article(Base):
    __tablename__ = "articles"

    __table_args__ = (
        CheckConstraint("vote_count >= 0", name="ck_articles_vote_count_non_negative"),
        # Ranking by votes (listing sorted by "voto")
        Index("ix_articles_vote_count", "vote_count"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(200), unique=True, nullable=False, index=True)
    title: Mapped[str] = mapped_column(String(300), nullable=False, default="")
    image: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)
    content: Mapped[str] = mapped_column(Text, nullable=False, default="")
    vote_count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )
    last_updated_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )

    # Relationships — lazy="noload" enforces explicit eager loading in services
    votes: Mapped[List["ArticleVote"]] = relationship(
        "ArticleVote", back_populates="article", lazy="noload"
    )
    comments: Mapped[List["Comment"]] = relationship(
        "Comment",
        back_populates="article",
        lazy="noload",
        order_by="Comment.submitted_at",
    )


# ---------------------------------------------------------------------------
# ArticleVote — the set of users that already voted for an article
# ---------------------------------------------------------------------------
class ArticleVote(Base):
    __tablename__ = "article_votes"

    # The composite primary key is what makes a second vote fail atomically.
    article_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("articles.id", ondelete="CASCADE"), primary_key=True
    )
    user_id: Mapped[str] = mapped_column(String(128), primary_key=True)
    voted_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    article: Mapped["Article"] = relationship("Article", back_populates="votes", lazy="noload")


# ---------------------------------------------------------------------------
# Comment
# ---------------------------------------------------------------------------
class Comment(Base):
    __tablename__ = "comments"

    __table_args__ = (
        # Newest-first comment pages
        Index("ix_comments_article_id_submitted_at", "article_id", "submitted_at"),
    )

    # One comment per (article, user): enforced by the primary key.
    article_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("articles.id", ondelete="CASCADE"), primary_key=True
    )
    user_id: Mapped[str] = mapped_column(String(128), primary_key=True)
    # Creation time in milliseconds; two comments may share it.
    id: Mapped[int] = mapped_column(BigInteger, nullable=False)
    author: Mapped[str] = mapped_column(String(AUTHOR_MAX_LENGTH), nullable=False)
    text: Mapped[str] = mapped_column(String(TEXT_MAX_LENGTH), nullable=False)
    submitted_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    origin_ip: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)

    article: Mapped["Article"] = relationship("Article", back_populates="comments", lazy="noload")
