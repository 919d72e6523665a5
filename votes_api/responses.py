import math
from datetime import datetime, timezone


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def utc_timestamp() -> str:
    """ISO-8601 timestamp attached to every response body."""
    return utc_now().isoformat()


def isoformat(value: datetime | None) -> str | None:
    return value.isoformat() if value else None


def pagination(total: int, page: int, limit: int) -> dict:
    return {
        "total": total,
        "pagina": page,
        "limite": limit,
        "totalPaginas": math.ceil(total / limit) if total > 0 else 0,
    }
