import logging
import random

from core.session_store import ShopifySession
from services.shopify import CommerceClient

logger = logging.getLogger(__name__)

DEFAULT_PRODUCTS_COUNT = 5

ADJECTIVES = [
    "autumn", "hidden", "bitter", "misty", "silent", "empty", "dry", "dark",
    "summer", "icy", "delicate", "quiet", "white", "cool", "spring", "winter",
    "patient", "twilight", "dawn", "crimson", "wispy", "weathered", "blue",
    "billowing", "broken", "cold", "damp", "falling", "frosty", "green", "long",
]

NOUNS = [
    "waterfall", "river", "breeze", "moon", "rain", "wind", "sea", "morning",
    "snow", "lake", "sunset", "pine", "shadow", "leaf", "dawn", "glitter",
    "forest", "hill", "cloud", "meadow", "sun", "glade", "bird", "brook",
    "butterfly", "bush", "dew", "dust", "field", "fire", "flower",
]


def random_title() -> str:
    return f"{random.choice(ADJECTIVES)} {random.choice(NOUNS)}"


def fetch_product_count(client: CommerceClient, session: ShopifySession) -> dict:
    return client.count_products(session)


def create_products(
    client: CommerceClient,
    session: ShopifySession,
    count: int = DEFAULT_PRODUCTS_COUNT,
) -> list[dict]:
    """Create `count` products with random titles in the session's shop.

    Stops at the first failure and lets it propagate.
    """
    created = []
    for _ in range(count):
        created.append(client.create_product(session, random_title()))

    logger.info("Created %d products for %s", len(created), session.shop)
    return created
