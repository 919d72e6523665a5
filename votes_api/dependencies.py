from fastapi import Query, Request

from votes_api.config import settings
from votes_api.identity import Identity

# Keeps (page - 1) * limit well inside the 64-bit OFFSET range.
MAX_PAGE = 1_000_000


class PaginationParams:
    """
    Reusable FastAPI dependency that parses and validates the ``page`` /
    ``limit`` query parameters.

    Non-numeric, non-positive or out-of-range values are rejected (400
    through the validation handler); ``limit`` is clamped to ``settings.MAX_PAGE_SIZE``.
    Routers that need a different default size subclass it, see
    ``ArticlePaginationParams``.
    """

    default_limit: int = settings.DEFAULT_PAGE_SIZE

    def __init__(
        self,
        page: int = Query(1, ge=1, le=MAX_PAGE, description="Page number (1-based)."),
        limit: int | None = Query(None, ge=1, description="Items per page."),
    ) -> None:
        self.page = page
        self.limit = min(limit or self.default_limit, settings.MAX_PAGE_SIZE)

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.limit


class ArticlePaginationParams(PaginationParams):
    default_limit = settings.ARTICLES_PAGE_SIZE

    def __init__(
        self,
        page: int = Query(1, ge=1, le=MAX_PAGE, description="Page number (1-based)."),
        limit: int | None = Query(None, ge=1, description="Items per page."),
        sort_by: str = Query(
            "nombre",
            alias="sortBy",
            description="Field to sort by: nombre, titulo, voto, fechaCreacion, ultimaActualizacion.",
        ),
        order: str = Query("asc", pattern="^(asc|desc)$", description="Sort direction."),
    ) -> None:
        super().__init__(page, limit)
        self.sort_by = sort_by
        self.order = order


def get_identity(request: Request) -> Identity | None:
    """The identity resolved by ``IdentityMiddleware``, or None if anonymous."""
    return getattr(request.state, "identity", None)
