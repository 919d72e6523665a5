import logging
import time
from contextvars import ContextVar

from sqlalchemy import event
from starlette.datastructures import Headers
from starlette.types import ASGIApp, Receive, Scope, Send

from votes_api.identity import TokenVerificationError

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Per-request context variable
# ---------------------------------------------------------------------------

query_count_var: ContextVar[int] = ContextVar("query_count", default=0)


def install_query_counter(engine) -> None:
    """
    Register a ``before_cursor_execute`` event listener on *engine* that
    increments the per-request ``query_count_var`` for every SQL statement.

    Must be called once per engine (``Store`` does it on construction).
    """
    sync_engine = engine.sync_engine

    @event.listens_for(sync_engine, "before_cursor_execute")
    def _count_query(conn, cursor, statement, parameters, context, executemany):
        query_count_var.set(query_count_var.get() + 1)


# ---------------------------------------------------------------------------
# Middleware (pure ASGI — avoids BaseHTTPMiddleware ContextVar isolation)
# ---------------------------------------------------------------------------

class TimingMiddleware:
    """
    Pure ASGI middleware that logs every request and adds two diagnostic
    response headers:

    - ``X-Response-Time-Ms``: wall-clock time for the entire request.
    - ``X-Query-Count``: total SQL statements executed during the request.
    """

    def __init__(self, app: ASGIApp) -> None:
        self.app = app

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        # Reset the per-request counter.
        query_count_var.set(0)
        start = time.perf_counter()
        status = 500

        async def send_wrapper(message):
            nonlocal status
            if message["type"] == "http.response.start":
                status = message["status"]
                duration_ms = round((time.perf_counter() - start) * 1000, 2)
                headers = list(message.get("headers", []))
                headers.append((b"x-response-time-ms", str(duration_ms).encode()))
                headers.append((b"x-query-count", str(query_count_var.get()).encode()))
                message["headers"] = headers
            await send(message)

        try:
            await self.app(scope, receive, send_wrapper)
        finally:
            logger.info(
                "%s %s -> %d (%.1f ms)",
                scope["method"],
                scope["path"],
                status,
                (time.perf_counter() - start) * 1000,
            )


class IdentityMiddleware:
    """
    Resolve the caller's identity once per request.

    The token is read from the ``authtoken`` header, or from
    ``Authorization: Bearer <token>``, and verified with the
    ``TokenVerifier`` found on ``app.state.verifier``.  The outcome is
    stored as ``request.state.identity``: an ``Identity`` on success,
    ``None`` otherwise.  Verification failures never reject the request.
    """

    def __init__(self, app: ASGIApp) -> None:
        self.app = app

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        identity = None
        token = _extract_token(Headers(scope=scope))
        if token:
            verifier = getattr(scope["app"].state, "verifier", None) if "app" in scope else None
            if verifier is None:
                logger.warning("Token received but identity verification is not configured")
            else:
                try:
                    identity = await verifier.verify(token)
                    logger.info("Authenticated user: %s", identity.email or identity.uid)
                except TokenVerificationError as exc:
                    logger.warning("Invalid token: %s", exc)

        scope.setdefault("state", {})["identity"] = identity
        await self.app(scope, receive, send)


def _extract_token(headers: Headers) -> str | None:
    token = headers.get("authtoken")
    if token:
        return token
    scheme, _, credentials = headers.get("authorization", "").partition(" ")
    if scheme.lower() == "bearer" and credentials.strip():
        return credentials.strip()
    return None
