import hashlib
import hmac
import logging
import secrets
import requests
from urllib.parse import urlencode

from fastapi import APIRouter, Request, HTTPException, Depends
from fastapi.responses import RedirectResponse
from starlette.concurrency import run_in_threadpool

from core.config import AUTH_PATH, AUTH_CALLBACK_PATH, WEBHOOKS_PATH, Settings
from core.context import AppContext, get_context
from core.session_store import ShopifySession, offline_session_id, sanitize_shop

logger = logging.getLogger(__name__)

router = APIRouter(tags=["auth"])

STATE_COOKIE = "shopify_oauth_state"
STATE_COOKIE_MAX_AGE = 1800  # 30 minutes

INSTALL_WEBHOOK_TOPICS = ["APP_UNINSTALLED"]


# ----------------------------
# Helpers
# ----------------------------

def verify_hmac(params: dict, received_hmac: str, secret: str) -> bool:
    sorted_params = "&".join([f"{k}={v}" for k, v in sorted(params.items())])
    digest = hmac.new(
        secret.encode(),
        sorted_params.encode(),
        hashlib.sha256
    ).hexdigest()
    return hmac.compare_digest(digest.encode(), received_hmac.encode())


def exchange_code_for_token(shop: str, code: str, settings: Settings) -> dict:
    token_response = requests.post(
        f"https://{shop}/admin/oauth/access_token",
        json={
            "client_id": settings.api_key,
            "client_secret": settings.api_secret,
            "code": code,
        },
        timeout=30,
    )
    return token_response.json()


def embedded_app_url(shop: str, settings: Settings) -> str:
    return f"https://{shop}/admin/apps/{settings.api_key}"


def _register_webhooks(context: AppContext, session: ShopifySession) -> None:
    callback_url = f"{context.settings.host}{WEBHOOKS_PATH}"
    for topic in INSTALL_WEBHOOK_TOPICS:
        context.commerce_client.register_webhook(session, topic, callback_url)


def _complete_install(context: AppContext, shop: str, code: str) -> ShopifySession:
    token_json = exchange_code_for_token(shop, code, context.settings)
    access_token = token_json.get("access_token")

    if not access_token:
        logger.error("Token exchange failed for %s: %s", shop, token_json)
        raise HTTPException(status_code=400, detail="Token exchange failed")

    session = ShopifySession(
        id=offline_session_id(shop),
        shop=shop,
        is_online=False,
        scope=token_json.get("scope", context.settings.scopes),
        access_token=access_token,
    )
    context.session_store.store_session(session)
    logger.info("Stored offline session for %s", shop)

    try:
        _register_webhooks(context, session)
    except Exception as e:
        logger.error("Webhook registration failed for %s: %s", shop, e)
        raise HTTPException(status_code=500, detail=f"Webhook registration failed: {e}")

    return session


# ----------------------------
# Step 1: Install redirect
# ----------------------------

@router.get(AUTH_PATH)
def begin(shop: str = None, context: AppContext = Depends(get_context)):
    shop = sanitize_shop(shop)
    if not shop:
        raise HTTPException(status_code=400, detail="Invalid shop")

    settings = context.settings
    state = secrets.token_urlsafe(24)

    params = {
        "client_id": settings.api_key,
        "scope": settings.scopes,
        "redirect_uri": f"{settings.host}{AUTH_CALLBACK_PATH}",
        "state": state,
    }

    url = f"https://{shop}/admin/oauth/authorize?" + urlencode(params)
    response = RedirectResponse(url)

    response.set_cookie(
        key=STATE_COOKIE,
        value=state,
        max_age=STATE_COOKIE_MAX_AGE,
        httponly=True,
        secure=True,
        samesite="lax",
    )

    return response


# ----------------------------
# Step 2: OAuth callback
# ----------------------------

@router.get(AUTH_CALLBACK_PATH)
async def callback(request: Request, context: AppContext = Depends(get_context)):

    params = dict(request.query_params)

    hmac_received = params.pop("hmac", None)
    code = params.get("code")
    shop = sanitize_shop(params.get("shop"))
    state = params.get("state")

    if not shop or not code or not hmac_received or not state:
        raise HTTPException(status_code=400, detail="Missing shop/code/hmac/state")

    # Validate state (CSRF)
    cookie_state = request.cookies.get(STATE_COOKIE)
    if not cookie_state or not hmac.compare_digest(cookie_state.encode(), state.encode()):
        raise HTTPException(status_code=400, detail="Invalid OAuth state")

    # Verify HMAC
    if not verify_hmac(params, hmac_received, context.settings.api_secret):
        raise HTTPException(status_code=400, detail="HMAC validation failed")

    await run_in_threadpool(_complete_install, context, shop, code)

    # Redirect into the Shopify admin
    response = RedirectResponse(embedded_app_url(shop, context.settings))
    response.delete_cookie(STATE_COOKIE)

    return response
