import logging
import re
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional, Protocol

from sqlalchemy.orm import sessionmaker

from db import Base, make_sessionmaker
from models import StoredSession

logger = logging.getLogger(__name__)

SHOP_DOMAIN_RE = re.compile(r"^[a-zA-Z0-9][a-zA-Z0-9\-]*\.myshopify\.(com|io)$")


# ----------------------------
# Shop domains
# ----------------------------

def normalize_shop(shop: str | None) -> str | None:
    if not shop:
        return None
    return shop.replace("https://", "").replace("http://", "").strip().strip("/").lower()


def sanitize_shop(shop: str | None) -> str | None:
    """Return the normalized shop domain, or None if it is not a myshopify domain."""
    shop = normalize_shop(shop)
    if not shop or not SHOP_DOMAIN_RE.match(shop):
        return None
    return shop


def offline_session_id(shop: str) -> str:
    return f"offline_{shop}"


# ----------------------------
# Session
# ----------------------------

@dataclass
class ShopifySession:
    id: str
    shop: str
    state: str = ""
    is_online: bool = False
    scope: Optional[str] = None
    access_token: Optional[str] = None
    expires: Optional[datetime] = None

    def is_expired(self) -> bool:
        if self.expires is None:
            return False
        expires = self.expires
        if expires.tzinfo is None:
            expires = expires.replace(tzinfo=timezone.utc)
        return expires <= datetime.now(timezone.utc)

    def is_active(self, scopes: set[str]) -> bool:
        granted = {s.strip() for s in (self.scope or "").split(",") if s.strip()}
        return bool(self.access_token) and not self.is_expired() and scopes <= granted


class SessionStore(Protocol):
    def initialize(self) -> None: ...

    def store_session(self, session: ShopifySession) -> bool: ...

    def load_session(self, session_id: str) -> Optional[ShopifySession]: ...

    def find_sessions_by_shop(self, shop: str) -> list[ShopifySession]: ...

    def delete_sessions(self, session_ids: list[str]) -> bool: ...


# ----------------------------
# SQL storage
# ----------------------------

def _to_session(row: StoredSession) -> ShopifySession:
    return ShopifySession(
        id=row.id,
        shop=row.shop,
        state=row.state,
        is_online=row.is_online,
        scope=row.scope,
        access_token=row.access_token,
        expires=row.expires,
    )


class SqlSessionStore:
    def __init__(self, database_url: str = None, session_factory: sessionmaker = None):
        if session_factory is None:
            session_factory = make_sessionmaker(database_url)
        self.session_factory = session_factory

    def initialize(self) -> None:
        Base.metadata.create_all(bind=self.session_factory.kw["bind"])

    def store_session(self, session: ShopifySession) -> bool:
        with self.session_factory() as db:
            row = db.get(StoredSession, session.id)
            if row is None:
                row = StoredSession(id=session.id)
                db.add(row)

            row.shop = session.shop
            row.state = session.state
            row.is_online = session.is_online
            row.scope = session.scope
            row.access_token = session.access_token
            row.expires = session.expires
            db.commit()

        logger.debug("Stored session %s", session.id)
        return True

    def load_session(self, session_id: str) -> Optional[ShopifySession]:
        with self.session_factory() as db:
            row = db.get(StoredSession, session_id)
            return _to_session(row) if row else None

    def find_sessions_by_shop(self, shop: str) -> list[ShopifySession]:
        with self.session_factory() as db:
            rows = db.query(StoredSession).filter(StoredSession.shop == shop).all()
            return [_to_session(row) for row in rows]

    def delete_sessions(self, session_ids: list[str]) -> bool:
        if not session_ids:
            return True
        with self.session_factory() as db:
            db.query(StoredSession).filter(StoredSession.id.in_(session_ids)).delete(
                synchronize_session=False
            )
            db.commit()

        logger.debug("Deleted sessions %s", session_ids)
        return True
