import logging

from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import JSONResponse

from core.context import AppContext, get_context
from core.proxy_signature import ProxyQuery, verify_app_proxy_request
from core.session_store import ShopifySession, offline_session_id
from core.session_token import require_session
from services.products import create_products, fetch_product_count

logger = logging.getLogger(__name__)


# ----------------------------
# App proxy (storefront), signature protected
# ----------------------------

proxy_router = APIRouter(prefix="/api", tags=["proxy"])


@proxy_router.get("/products-count")
def products_count_proxy(
    query: ProxyQuery = Depends(verify_app_proxy_request),
    context: AppContext = Depends(get_context),
):
    if query.shop:
        session = context.session_store.load_session(offline_session_id(query.shop))
        if session:
            count_data = fetch_product_count(context.commerce_client, session)
            return {"success": True, "countData": count_data}

    return {"success": False}


# ----------------------------
# Embedded app, authenticated session required
# ----------------------------

router = APIRouter(prefix="/api", tags=["api"], dependencies=[Depends(require_session)])


@router.get("/products/count")
def products_count(
    session: ShopifySession = Depends(require_session),
    context: AppContext = Depends(get_context),
):
    return fetch_product_count(context.commerce_client, session)


@router.get("/products/create")
def products_create(
    session: ShopifySession = Depends(require_session),
    context: AppContext = Depends(get_context),
):
    status_code = 200
    error = None

    try:
        create_products(context.commerce_client, session)
    except Exception as e:
        logger.error("Failed to process products/create: %s", e)
        status_code = 500
        error = str(e)

    return JSONResponse(status_code=status_code, content={"success": status_code == 200, "error": error})


@router.api_route("/{rest:path}", methods=["GET", "POST", "PUT", "PATCH", "DELETE"], include_in_schema=False)
def unknown_api_route(rest: str):
    raise HTTPException(status_code=404, detail="Not found")
