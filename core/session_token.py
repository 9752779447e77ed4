from typing import Optional
from urllib.parse import urlencode, urlparse

import jwt
from fastapi import Depends, Header, HTTPException, status

from core.config import AUTH_PATH
from core.context import AppContext, get_context
from core.session_store import ShopifySession, offline_session_id, sanitize_shop


def _shop_from_dest(dest: str) -> Optional[str]:
    # dest looks like: "https://mystore.myshopify.com"
    return sanitize_shop(urlparse(dest).netloc)


def _error(status_code: int, message: str, headers: dict | None = None):
    raise HTTPException(status_code=status_code, detail={"error": message}, headers=headers)


def decode_session_token(token: str, api_key: str, api_secret: str) -> str:
    """Verify a Shopify App Bridge session token and return the shop domain it names."""
    try:
        payload = jwt.decode(
            token,
            api_secret,
            algorithms=["HS256"],
            audience=api_key,
            options={"require": ["exp", "aud", "dest"]},
        )
    except jwt.PyJWTError:
        _error(status.HTTP_401_UNAUTHORIZED, "invalid session token")

    shop_domain = _shop_from_dest(payload.get("dest", ""))
    if not shop_domain:
        _error(status.HTTP_401_UNAUTHORIZED, "invalid session token")

    return shop_domain


def reauthorize_headers(shop: str) -> dict:
    return {
        "X-Shopify-API-Request-Failure-Reauthorize": "1",
        "X-Shopify-API-Request-Failure-Reauthorize-Url": f"{AUTH_PATH}?{urlencode({'shop': shop})}",
    }


def require_session(
    authorization: Optional[str] = Header(default=None),
    context: AppContext = Depends(get_context),
) -> ShopifySession:
    """
    Expect: Authorization: Bearer <session_token>
    Returns the stored offline session of the shop named by the token.
    """
    if not authorization or not authorization.startswith("Bearer "):
        _error(status.HTTP_401_UNAUTHORIZED, "invalid session token")

    token = authorization.split(" ", 1)[1].strip()
    settings = context.settings
    shop = decode_session_token(token, settings.api_key, settings.api_secret)

    session = context.session_store.load_session(offline_session_id(shop))
    if session is None or not session.is_active(settings.scope_list):
        _error(status.HTTP_403_FORBIDDEN, "reauthorization required", reauthorize_headers(shop))

    return session
