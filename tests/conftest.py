"""Shared fixtures: an AppContext wired with in-memory fakes."""

from __future__ import annotations

import time
from typing import Optional

import jwt
import pytest
from fastapi.testclient import TestClient

from core.config import Settings
from core.context import AppContext
from core.proxy_signature import compute_signature
from core.session_store import ShopifySession, offline_session_id
from main import create_app
from services.gdpr import build_webhook_dispatcher

API_KEY = "test-api-key"
API_SECRET = "test-shopify-api-secret-0123456789abcdef"
SHOP = "test-shop.myshopify.com"


class FakeSessionStore:
    def __init__(self):
        self.sessions: dict[str, ShopifySession] = {}

    def initialize(self) -> None:
        pass

    def store_session(self, session: ShopifySession) -> bool:
        self.sessions[session.id] = session
        return True

    def load_session(self, session_id: str) -> Optional[ShopifySession]:
        return self.sessions.get(session_id)

    def find_sessions_by_shop(self, shop: str) -> list[ShopifySession]:
        return [s for s in self.sessions.values() if s.shop == shop]

    def delete_sessions(self, session_ids: list[str]) -> bool:
        for session_id in session_ids:
            self.sessions.pop(session_id, None)
        return True


class FakeCommerceClient:
    def __init__(self, count: int = 0):
        self.count = count
        self.count_error: Exception | None = None
        self.create_error: Exception | None = None
        self.created: list[tuple[str, str]] = []
        self.webhooks: list[tuple[str, str, str]] = []

    def count_products(self, session: ShopifySession) -> dict:
        if self.count_error:
            raise self.count_error
        return {"count": self.count}

    def create_product(self, session: ShopifySession, title: str) -> dict:
        if self.create_error:
            raise self.create_error
        self.created.append((session.shop, title))
        return {"id": f"gid://shopify/Product/{len(self.created)}", "title": title}

    def register_webhook(self, session: ShopifySession, topic: str, callback_url: str) -> None:
        self.webhooks.append((session.shop, topic, callback_url))


@pytest.fixture()
def static_dir(tmp_path):
    root = tmp_path / "frontend"
    (root / "assets").mkdir(parents=True)
    (root / "index.html").write_text("<html><body>app shell</body></html>")
    (root / "assets" / "app.js").write_text("console.log('app');")
    return root


@pytest.fixture()
def settings(static_dir) -> Settings:
    return Settings(
        api_key=API_KEY,
        api_secret=API_SECRET,
        scopes="write_products",
        host="https://app.example.com",
        api_version="2024-01",
        port=3000,
        environment="test",
        static_path=str(static_dir),
        database_url="sqlite://",
    )


@pytest.fixture()
def store() -> FakeSessionStore:
    return FakeSessionStore()


@pytest.fixture()
def commerce() -> FakeCommerceClient:
    return FakeCommerceClient(count=7)


@pytest.fixture()
def context(settings, store, commerce) -> AppContext:
    return AppContext(
        settings=settings,
        session_store=store,
        commerce_client=commerce,
        webhook_dispatcher=build_webhook_dispatcher(store),
    )


@pytest.fixture()
def client(context) -> TestClient:
    return TestClient(create_app(context), raise_server_exceptions=False)


@pytest.fixture()
def installed_session(store) -> ShopifySession:
    session = ShopifySession(
        id=offline_session_id(SHOP),
        shop=SHOP,
        scope="write_products",
        access_token="shpat_test",
    )
    store.store_session(session)
    return session


def sign_proxy_params(params: dict, secret: str = API_SECRET) -> dict:
    return {**params, "signature": compute_signature(params, secret)}


def session_token(shop: str = SHOP, secret: str = API_SECRET, audience: str = API_KEY, ttl: int = 60) -> str:
    now = int(time.time())
    payload = {
        "iss": f"https://{shop}/admin",
        "dest": f"https://{shop}",
        "aud": audience,
        "sub": "42",
        "exp": now + ttl,
        "nbf": now - 5,
        "iat": now,
    }
    return jwt.encode(payload, secret, algorithm="HS256")


@pytest.fixture()
def auth_headers() -> dict:
    return {"Authorization": f"Bearer {session_token()}"}
