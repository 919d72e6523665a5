"""
Error taxonomy shared by the store gateway, the handlers and the HTTP layer.

Every ``ServiceError`` carries the HTTP status it maps to and a
user-facing message.  ``install_exception_handlers`` registers the FastAPI
handlers that turn them (and framework/driver errors) into the JSON error
body used across the API::

    {"mensaje": "...", "timestamp": "..."}
"""
import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlalchemy.exc import InterfaceError, OperationalError
from starlette.exceptions import HTTPException as StarletteHTTPException

from votes_api.responses import utc_timestamp

logger = logging.getLogger(__name__)


class ServiceError(Exception):
    status_code: int = 500
    default_message: str = "Error interno del servidor"

    def __init__(self, message: str | None = None, **extra) -> None:
        self.message = message or self.default_message
        self.extra = extra
        super().__init__(self.message)

    def to_dict(self) -> dict:
        return {"mensaje": self.message, **self.extra, "timestamp": utc_timestamp()}


class InvalidArgument(ServiceError):
    status_code = 400
    default_message = "Datos de entrada inválidos"


class NotFound(ServiceError):
    status_code = 404
    default_message = "Artículo no encontrado"


class Conflict(ServiceError):
    status_code = 409
    default_message = "La acción ya fue registrada para este usuario"


class AlreadyVoted(Conflict):
    default_message = "Ya has votado por este artículo"


class AlreadyCommented(Conflict):
    default_message = "Ya has comentado en este artículo"


class InternalError(ServiceError):
    status_code = 500


class StoreUnavailable(ServiceError):
    status_code = 503
    default_message = "Servicio no disponible - Error de base de datos"


# ---------------------------------------------------------------------------
# FastAPI handlers
# ---------------------------------------------------------------------------

async def _service_error_handler(request: Request, exc: ServiceError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


async def _validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    errors = [
        {
            "campo": ".".join(str(part) for part in err.get("loc", ()) if part != "body"),
            "detalle": err.get("msg", ""),
        }
        for err in exc.errors()
    ]
    body = InvalidArgument(errores=errors).to_dict()
    return JSONResponse(status_code=400, content=body)


async def _store_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.error("Store error on %s %s: %s", request.method, request.url.path, exc)
    return JSONResponse(status_code=503, content=StoreUnavailable().to_dict())


async def _http_error_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    # A known path with an unsupported method is just another unmatched route.
    if exc.status_code in (404, 405):
        content = {
            "mensaje": "Endpoint no encontrado",
            "path": request.url.path,
            "method": request.method,
            "timestamp": utc_timestamp(),
        }
        return JSONResponse(status_code=404, content=content)
    content = {"mensaje": str(exc.detail), "timestamp": utc_timestamp()}
    return JSONResponse(status_code=exc.status_code, content=content, headers=exc.headers)


async def _unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return JSONResponse(status_code=500, content=InternalError().to_dict())


def install_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(ServiceError, _service_error_handler)
    app.add_exception_handler(RequestValidationError, _validation_error_handler)
    app.add_exception_handler(OperationalError, _store_error_handler)
    app.add_exception_handler(InterfaceError, _store_error_handler)
    app.add_exception_handler(StarletteHTTPException, _http_error_handler)
    app.add_exception_handler(Exception, _unhandled_error_handler)
