import hashlib
import hmac
import logging
from typing import Iterable, Mapping, Optional, Sequence, Union

from fastapi import Depends, Request
from pydantic import BaseModel, ConfigDict, field_validator

from core.context import AppContext, get_context
from core.session_store import sanitize_shop

logger = logging.getLogger(__name__)

QueryValue = Union[str, Sequence[str]]
QueryParams = Union[Mapping[str, QueryValue], Iterable[tuple[str, str]]]


class InvalidProxySignature(Exception):
    pass


class ProxyQuery(BaseModel):
    """Query parameters Shopify adds to every app proxy request."""

    model_config = ConfigDict(extra="ignore")

    shop: Optional[str] = None
    signature: Optional[str] = None
    path_prefix: Optional[str] = None
    timestamp: Optional[str] = None
    logged_in_customer_id: Optional[str] = None

    @field_validator("shop")
    @classmethod
    def _valid_shop(cls, value: Optional[str]) -> Optional[str]:
        return sanitize_shop(value)


# ----------------------------
# Signature
# ----------------------------

def _group(params: QueryParams) -> dict[str, list[str]]:
    items = params.items() if isinstance(params, Mapping) else params

    grouped: dict[str, list[str]] = {}
    for key, value in items:
        values = [value] if isinstance(value, str) else list(value)
        grouped.setdefault(key, []).extend(str(v) for v in values)
    return grouped


def canonical_query(params: QueryParams) -> str:
    """Sorted `key=value` pairs with no separator; repeated keys are comma-joined."""
    grouped = _group(params)
    grouped.pop("signature", None)
    return "".join(f"{key}={','.join(values)}" for key, values in sorted(grouped.items()))


def compute_signature(params: QueryParams, secret: str) -> str:
    return hmac.new(
        secret.encode(),
        canonical_query(params).encode(),
        hashlib.sha256
    ).hexdigest()


def verify_app_proxy_signature(params: QueryParams, secret: str | None) -> bool:
    grouped = _group(params)
    provided = grouped.get("signature")

    if not secret or not provided or len(provided) != 1:
        return False

    expected = compute_signature(grouped, secret)
    return hmac.compare_digest(expected.encode(), provided[0].encode())


# ----------------------------
# Dependency
# ----------------------------

def verify_app_proxy_request(
    request: Request, context: AppContext = Depends(get_context)
) -> ProxyQuery:
    params = request.query_params.multi_items()

    if not verify_app_proxy_signature(params, context.settings.api_secret):
        logger.warning("Rejected app proxy request with invalid signature")
        raise InvalidProxySignature()

    return ProxyQuery.model_validate(dict(params))
