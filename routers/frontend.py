import base64
import binascii
import logging
import os
from urllib.parse import urlencode

from fastapi import APIRouter, Depends, Request
from fastapi.responses import HTMLResponse, PlainTextResponse, RedirectResponse, Response
from fastapi.staticfiles import StaticFiles
from starlette.concurrency import run_in_threadpool
from starlette.exceptions import HTTPException

from core.config import AUTH_PATH
from core.context import AppContext, get_context
from core.session_store import SHOP_DOMAIN_RE, offline_session_id, sanitize_shop

ADMIN_HOST = "admin.shopify.com"

logger = logging.getLogger(__name__)

router = APIRouter(tags=["frontend"])


def _decode_host(host: str) -> str | None:
    padded = host + "=" * (-len(host) % 4)
    try:
        return base64.b64decode(padded, altchars=b"-_").decode()
    except (binascii.Error, UnicodeDecodeError):
        return None


def admin_host_from_param(host: str) -> str | None:
    """Decode the `host` parameter, keeping it only if it points into the Shopify admin."""
    decoded = _decode_host(host)
    if not decoded:
        return None

    domain = decoded.split("/", 1)[0].lower()
    if domain != ADMIN_HOST and not SHOP_DOMAIN_RE.match(domain):
        return None
    return decoded.rstrip("/")


def _read_index(static_path: str) -> str:
    with open(os.path.join(static_path, "index.html"), encoding="utf-8") as f:
        return f.read()


def ensure_installed_on_shop(request: Request, context: AppContext) -> Response | None:
    """Return a response that stops the request, or None when the shop may see the app."""
    shop = sanitize_shop(request.query_params.get("shop"))
    if not shop:
        return PlainTextResponse("No shop provided", status_code=422)

    session = context.session_store.load_session(offline_session_id(shop))
    if session is None or not session.is_active(context.settings.scope_list):
        logger.info("App not installed on %s, redirecting to auth", shop)
        return RedirectResponse(f"{AUTH_PATH}?{urlencode({'shop': shop})}")

    host = request.query_params.get("host")
    if request.query_params.get("embedded") != "1" and host:
        admin_host = admin_host_from_param(host)
        if not admin_host:
            logger.warning("Rejected host parameter for %s: %s", shop, host)
            return PlainTextResponse("Invalid host", status_code=400)
        return RedirectResponse(f"https://{admin_host}/apps/{context.settings.api_key}{request.url.path}")

    return None


def _static_files(context: AppContext) -> StaticFiles:
    return StaticFiles(directory=context.settings.static_path, html=False, check_dir=False)


@router.get("/{full_path:path}", include_in_schema=False)
async def serve_frontend(full_path: str, request: Request, context: AppContext = Depends(get_context)):
    relative = os.path.normpath(os.path.join(*full_path.split("/")))
    try:
        return await _static_files(context).get_response(relative, request.scope)
    except HTTPException as e:
        if e.status_code != 404:
            raise

    stop = await run_in_threadpool(ensure_installed_on_shop, request, context)
    if stop is not None:
        return stop

    html = await run_in_threadpool(_read_index, context.settings.static_path)
    return HTMLResponse(html, status_code=200)
