import base64
import hashlib
import hmac
import logging
from dataclasses import dataclass, field
from typing import Callable

logger = logging.getLogger(__name__)


# ----------------------------
# Helpers
# ----------------------------

def normalize_topic(topic: str) -> str:
    """Map "customers/data_request" to "CUSTOMERS_DATA_REQUEST"."""
    return topic.strip().replace("/", "_").replace(".", "_").upper()


def verify_webhook(data: bytes, hmac_header: str | None, secret: str | None) -> bool:
    if not hmac_header or not secret:
        return False

    digest = hmac.new(
        secret.encode(),
        data,
        hashlib.sha256
    ).digest()

    computed_hmac = base64.b64encode(digest).decode()
    return hmac.compare_digest(computed_hmac.encode(), hmac_header.encode())


# ----------------------------
# Dispatch
# ----------------------------

@dataclass
class WebhookEvent:
    topic: str
    shop: str
    payload: dict = field(default_factory=dict)
    webhook_id: str | None = None
    api_version: str | None = None


WebhookHandler = Callable[[WebhookEvent], None]


class UnknownWebhookTopic(Exception):
    pass


class WebhookDispatcher:
    def __init__(self, handlers: dict[str, WebhookHandler] | None = None):
        self._handlers: dict[str, WebhookHandler] = {}
        for topic, handler in (handlers or {}).items():
            self.register(topic, handler)

    def register(self, topic: str, handler: WebhookHandler) -> None:
        self._handlers[normalize_topic(topic)] = handler

    @property
    def topics(self) -> list[str]:
        return sorted(self._handlers)

    def handles(self, topic: str) -> bool:
        return normalize_topic(topic) in self._handlers

    def dispatch(self, event: WebhookEvent) -> None:
        topic = normalize_topic(event.topic)
        handler = self._handlers.get(topic)
        if handler is None:
            raise UnknownWebhookTopic(topic)

        event.topic = topic
        logger.info("Dispatching %s webhook for %s (id=%s)", topic, event.shop, event.webhook_id)
        handler(event)
