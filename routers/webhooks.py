import json
import logging

from fastapi import APIRouter, Depends, HTTPException, Request
from starlette.concurrency import run_in_threadpool

from core.config import WEBHOOKS_PATH
from core.context import AppContext, get_context
from core.session_store import sanitize_shop
from core.webhooks import WebhookEvent, verify_webhook

logger = logging.getLogger(__name__)

router = APIRouter(tags=["webhooks"])


@router.post(WEBHOOKS_PATH)
async def process_webhook(request: Request, context: AppContext = Depends(get_context)):

    raw_body = await request.body()
    hmac_header = request.headers.get("X-Shopify-Hmac-Sha256")

    if not verify_webhook(raw_body, hmac_header, context.settings.api_secret):
        logger.warning("Rejected webhook with invalid HMAC")
        raise HTTPException(status_code=401, detail="Webhook HMAC failed")

    topic = request.headers.get("X-Shopify-Topic")
    shop = sanitize_shop(request.headers.get("X-Shopify-Shop-Domain"))

    if not topic or not shop:
        raise HTTPException(status_code=400, detail="Missing webhook topic or shop")

    dispatcher = context.webhook_dispatcher
    if not dispatcher.handles(topic):
        raise HTTPException(status_code=404, detail=f"No handler for webhook topic {topic}")

    try:
        payload = json.loads(raw_body) if raw_body else {}
    except ValueError:
        raise HTTPException(status_code=400, detail="Webhook body is not JSON")

    event = WebhookEvent(
        topic=topic,
        shop=shop,
        payload=payload if isinstance(payload, dict) else {},
        webhook_id=request.headers.get("X-Shopify-Webhook-Id"),
        api_version=request.headers.get("X-Shopify-API-Version"),
    )
    await run_in_threadpool(dispatcher.dispatch, event)

    return {"status": "ok"}
