from dataclasses import dataclass

from fastapi import Request

from core.config import Settings
from core.session_store import SessionStore
from core.webhooks import WebhookDispatcher
from services.shopify import CommerceClient


@dataclass
class AppContext:
    """Everything a request handler needs, built once at startup."""

    settings: Settings
    session_store: SessionStore
    commerce_client: CommerceClient
    webhook_dispatcher: WebhookDispatcher


def get_context(request: Request) -> AppContext:
    return request.app.state.context
