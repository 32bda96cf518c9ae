import logging
import os
from contextlib import asynccontextmanager
from pathlib import Path

import setproctitle

import settings
from brotli_asgi import BrotliMiddleware
from fastapi import APIRouter, FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.middleware import Middleware

from models.common import Database
from routes.auth_route import get_version, router as auth_router
from routes.chat_route import router as chat_router
from routes.friendship_route import router as friendship_router
from routes.group_route import router as group_router
from services.errors import ServiceError
from utils.logs import setup_logs

logger = logging.getLogger("campus.main")
setup_logs()
setproctitle.setproctitle("Campus Connect API")


def update_database(url: str | None = None):
    """Init the DB or run the Alembic migrations, on `url` when given"""
    import alembic.config

    if not Path("alembic.ini").is_file():
        os.chdir(settings.BACKEND_DIR)

    try:
        alembic.config.main(
            argv=[
                "--raiseerr",
                *(["-x", f"url={url}"] if url else []),
                "upgrade",
                "head",
            ]
        )
    except Exception as e:
        logger.exception(f"Cannot run DB migrations: {e}")


def _error(status_code: int, message: str, error: str | None = None, headers=None):
    body = {"success": False, "message": message}
    if error and not settings.PRODUCTION:
        body["error"] = error
    return JSONResponse(status_code=status_code, content=body, headers=headers)


async def service_error_handler(request: Request, exc: ServiceError):
    if exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc.message}")
    return _error(exc.status_code, exc.message)


async def http_error_handler(request: Request, exc: StarletteHTTPException):
    return _error(exc.status_code, str(exc.detail), headers=exc.headers)


async def validation_error_handler(request: Request, exc: RequestValidationError):
    problems = "; ".join(
        f"{'.'.join(str(p) for p in err['loc'] if p != 'body')}: {err['msg']}"
        for err in exc.errors()
    )
    return _error(400, "Invalid request", error=problems)


async def unexpected_error_handler(request: Request, exc: Exception):
    logger.exception(
        f"Unexpected error on {request.method} {request.url.path} "
        f"{dict(request.path_params)}: {exc}"
    )
    return _error(500, "Internal server error", error=repr(exc))


def app_lifespan_for(database: Database):
    @asynccontextmanager
    async def app_lifespan(app: FastAPI):
        """Lifespan context manager for FastAPI app"""
        logger.debug("Starting...")
        database.open()
        update_database(database.url)
        if not database.health_check():
            logger.error("Database is not reachable at startup")
        yield
        database.close()
        logger.debug("Closing app")

    return app_lifespan


def create_app(database: Database | None = None) -> FastAPI:
    """Create and configure the FastAPI application"""
    database = database or Database(settings.DATABASE_URL)

    app = FastAPI(
        title="Campus Connect",
        description="Friends, direct messages and group chats for the campus",
        version=get_version(),
        middleware=[
            Middleware(BrotliMiddleware, minimum_size=1000),
        ],
        swagger_ui_parameters={
            "defaultModelsExpandDepth": 0,
        },  # collapse the swagger schema
        lifespan=app_lifespan_for(database),
    )
    app.state.db = database

    app.add_exception_handler(ServiceError, service_error_handler)
    app.add_exception_handler(StarletteHTTPException, http_error_handler)
    app.add_exception_handler(RequestValidationError, validation_error_handler)
    app.add_exception_handler(Exception, unexpected_error_handler)

    # Mount routers
    api_router = APIRouter()
    api_router.include_router(auth_router, tags=["auth"])
    api_router.include_router(friendship_router, tags=["friendship"])
    api_router.include_router(chat_router, tags=["chat"])
    api_router.include_router(group_router, tags=["groups"])
    app.include_router(api_router, prefix=settings.API_PREFIX)
    return app
