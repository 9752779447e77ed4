import logging
import sys
from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse, Response
from starlette.exceptions import HTTPException as StarletteHTTPException

from core.auth import router as auth_router
from core.config import Settings
from core.context import AppContext
from core.proxy_signature import InvalidProxySignature
from core.session_store import SqlSessionStore, sanitize_shop
from routers.api import proxy_router, router as api_router
from routers.frontend import router as frontend_router
from routers.webhooks import router as webhooks_router
from services.gdpr import build_webhook_dispatcher
from services.shopify import ShopifyAdminClient, ShopifyApiError

logger = logging.getLogger(__name__)


def _configure_logging(level: str) -> None:
    log_level = getattr(logging, level.upper(), logging.INFO)

    formatter = logging.Formatter(
        fmt="%(asctime)s | %(levelname)-8s | %(name)s:%(lineno)d | %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(formatter)

    root = logging.getLogger()
    root.setLevel(log_level)
    # create_app() runs more than once under tests
    if not root.handlers:
        root.addHandler(handler)

    if log_level > logging.DEBUG:
        logging.getLogger("urllib3").setLevel(logging.WARNING)
        logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)


def build_context(settings: Settings) -> AppContext:
    store = SqlSessionStore(settings.database_url)
    return AppContext(
        settings=settings,
        session_store=store,
        commerce_client=ShopifyAdminClient(settings.api_version),
        webhook_dispatcher=build_webhook_dispatcher(store),
    )


def create_app(context: AppContext | None = None) -> FastAPI:
    if context is None:
        context = build_context(Settings.from_env())

    _configure_logging(context.settings.log_level)

    @asynccontextmanager
    async def lifespan(_: FastAPI):
        context.session_store.initialize()
        logger.info("Session storage ready, serving frontend from %s", context.settings.static_path)
        logger.info("Handling webhook topics: %s", ", ".join(context.webhook_dispatcher.topics))
        yield

    app = FastAPI(lifespan=lifespan)
    app.state.context = context

    # ----------------------------
    # Error mapping
    # ----------------------------

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(_: Request, exc: StarletteHTTPException):
        if isinstance(exc.detail, dict):
            content = exc.detail
        else:
            content = {"error": str(exc.detail)}

        return JSONResponse(status_code=exc.status_code, content=content, headers=exc.headers)

    @app.exception_handler(InvalidProxySignature)
    async def proxy_signature_handler(_: Request, __: InvalidProxySignature):
        return Response(status_code=401)

    @app.exception_handler(ShopifyApiError)
    async def shopify_api_error_handler(request: Request, exc: ShopifyApiError):
        logger.error("Shopify API call failed on %s: %s", request.url.path, exc)
        return JSONResponse(status_code=502, content={"success": False, "error": str(exc)})

    @app.exception_handler(Exception)
    async def unhandled_exception_handler(request: Request, exc: Exception):
        logger.exception("Unhandled error on %s", request.url.path, exc_info=exc)
        return JSONResponse(status_code=500, content={"error": "server error"})

    # ----------------------------
    # Shopify iframe embedding headers
    # ----------------------------

    @app.middleware("http")
    async def add_shopify_headers(request: Request, call_next):
        response = await call_next(request)

        shop = sanitize_shop(request.query_params.get("shop"))
        if shop:
            response.headers["Content-Security-Policy"] = (
                f"frame-ancestors https://{shop} https://admin.shopify.com;"
            )
        else:
            response.headers["Content-Security-Policy"] = "frame-ancestors 'none';"

        return response

    # ----------------------------
    # Routers, order matters
    # ----------------------------

    app.include_router(auth_router)
    app.include_router(webhooks_router)
    app.include_router(proxy_router)
    app.include_router(api_router)
    app.include_router(frontend_router)

    return app


if __name__ == "__main__":
    settings = Settings.from_env()
    uvicorn.run(create_app(build_context(settings)), host="0.0.0.0", port=settings.port)
