# taskmarket/main.py
import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.openapi.utils import get_openapi
from fastapi.responses import JSONResponse
from sqlalchemy.exc import OperationalError

from taskmarket.api.chat import router as chat_router
from taskmarket.api.gamification import router as gamification_router
from taskmarket.api.health import router as health_router
from taskmarket.api.notifications import router as notifications_router
from taskmarket.api.reviews import router as reviews_router
from taskmarket.api.tasks import router as tasks_router
from taskmarket.core.cache import TTLCache
from taskmarket.core.config import settings
from taskmarket.core.errors import ErrorKind, LifecycleError
from taskmarket.core.logging import configure_logging
from taskmarket.services.notification_fanout import NotificationFanout, audience_from_name
from taskmarket.services.notification_feed import NotificationFeed
from taskmarket.services.push_sender import PushSender

logger = logging.getLogger(__name__)

OPEN_PATHS = {"/health"}


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    configure_logging()
    logger.info("Starting %s (%s)", settings.app_name, settings.env)
    yield
    app.state.push_sender.close()
    logger.info("Stopped %s", settings.app_name)


def lifecycle_error_handler(request: Request, exc: LifecycleError) -> JSONResponse:
    if exc.kind.http_status >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc)
    else:
        logger.info("%s %s rejected: %s", request.method, request.url.path, exc)
    return JSONResponse(status_code=exc.kind.http_status, content={"error": exc.to_payload()})


def store_unavailable_handler(request: Request, exc: OperationalError) -> JSONResponse:
    logger.error("Store unavailable during %s %s: %s", request.method, request.url.path, exc)
    err = LifecycleError(ErrorKind.STORE_UNAVAILABLE, str(exc.orig) if exc.orig else None)
    return JSONResponse(status_code=err.kind.http_status, content={"error": err.to_payload()})


def create_app(
    *,
    push_sender: PushSender | None = None,
    fanout: NotificationFanout | None = None,
    feed: NotificationFeed | None = None,
) -> FastAPI:
    app = FastAPI(
        title=settings.app_name,
        version=settings.api_version,
        description=settings.api_description,
        lifespan=lifespan,
    )

    app.state.push_sender = push_sender or PushSender(
        url=settings.push_relay_url,
        chunk_size=settings.push_chunk_size,
        timeout=settings.push_timeout_seconds,
        enabled=settings.push_enabled,
    )
    app.state.fanout = fanout or NotificationFanout(
        posted_audience=audience_from_name(settings.posted_audience),
        profile_cache=TTLCache(settings.profile_cache_ttl_seconds),
    )
    app.state.feed = feed or NotificationFeed()

    app.add_exception_handler(LifecycleError, lifecycle_error_handler)
    app.add_exception_handler(OperationalError, store_unavailable_handler)

    def custom_openapi():
        if app.openapi_schema:
            return app.openapi_schema

        schema = get_openapi(
            title=app.title,
            version=app.version,
            description=app.description,
            routes=app.routes,
        )

        # Header-based identity: document it as an apiKey scheme.
        schema.setdefault("components", {}).setdefault("securitySchemes", {})
        schema["components"]["securitySchemes"]["XUserId"] = {
            "type": "apiKey",
            "in": "header",
            "name": "X-User-Id",
            "description": "Authenticated user id (UUID). Required for mutations.",
        }
        schema["security"] = [{"XUserId": []}]

        # Public endpoints: remove security requirement explicitly.
        for path in OPEN_PATHS:
            for _method, op in schema.get("paths", {}).get(path, {}).items():
                if isinstance(op, dict):
                    op["security"] = []

        app.openapi_schema = schema
        return app.openapi_schema

    app.openapi = custom_openapi

    app.include_router(health_router, tags=["health"])
    app.include_router(tasks_router, tags=["tasks"])
    app.include_router(notifications_router, tags=["notifications"])
    app.include_router(reviews_router, tags=["reviews"])
    app.include_router(chat_router, tags=["chat"])
    app.include_router(gamification_router, tags=["gamification"])
    return app


app = create_app()
