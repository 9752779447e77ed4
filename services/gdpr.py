import logging

from core.session_store import SessionStore
from core.webhooks import WebhookDispatcher, WebhookEvent

logger = logging.getLogger(__name__)


def customers_data_request(event: WebhookEvent) -> None:
    # No customer data is stored; the request only needs acknowledging.
    logger.info(
        "Customer data request for %s (customer=%s)",
        event.shop,
        (event.payload.get("customer") or {}).get("id"),
    )


def customers_redact(event: WebhookEvent) -> None:
    logger.info(
        "Customer redact for %s (customer=%s)",
        event.shop,
        (event.payload.get("customer") or {}).get("id"),
    )


def _delete_shop_sessions(store: SessionStore, shop: str) -> None:
    sessions = store.find_sessions_by_shop(shop)
    store.delete_sessions([s.id for s in sessions])
    logger.info("Deleted %d sessions for %s", len(sessions), shop)


def build_webhook_dispatcher(store: SessionStore) -> WebhookDispatcher:
    def shop_redact(event: WebhookEvent) -> None:
        _delete_shop_sessions(store, event.shop)

    def app_uninstalled(event: WebhookEvent) -> None:
        _delete_shop_sessions(store, event.shop)

    return WebhookDispatcher({
        "CUSTOMERS_DATA_REQUEST": customers_data_request,
        "CUSTOMERS_REDACT": customers_redact,
        "SHOP_REDACT": shop_redact,
        "APP_UNINSTALLED": app_uninstalled,
    })
