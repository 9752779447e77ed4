import logging
from typing import Protocol

import requests

from core.session_store import ShopifySession

logger = logging.getLogger(__name__)


class ShopifyApiError(Exception):
    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


class CommerceClient(Protocol):
    def count_products(self, session: ShopifySession) -> dict: ...

    def create_product(self, session: ShopifySession, title: str) -> dict: ...

    def register_webhook(self, session: ShopifySession, topic: str, callback_url: str) -> None: ...


PRODUCT_CREATE_MUTATION = """
mutation populateProduct($input: ProductInput!) {
  productCreate(input: $input) {
    product { id title }
    userErrors { field message }
  }
}
"""

WEBHOOK_CREATE_MUTATION = """
mutation webhookSubscriptionCreate($topic: WebhookSubscriptionTopic!, $callbackUrl: URL!) {
  webhookSubscriptionCreate(
    topic: $topic,
    webhookSubscription: { callbackUrl: $callbackUrl, format: JSON }
  ) {
    webhookSubscription { id }
    userErrors { field message }
  }
}
"""


class ShopifyAdminClient:
    def __init__(self, api_version: str, timeout: int = 30):
        self.api_version = api_version
        self.timeout = timeout

    def _base_url(self, session: ShopifySession) -> str:
        return f"https://{session.shop}/admin/api/{self.api_version}"

    def _headers(self, session: ShopifySession) -> dict:
        return {
            "X-Shopify-Access-Token": session.access_token or "",
            "Content-Type": "application/json",
        }

    # ---------- Internal helpers ----------
    def _rest_get(self, session: ShopifySession, path: str) -> dict:
        try:
            response = requests.get(
                f"{self._base_url(session)}/{path}",
                headers=self._headers(session),
                timeout=self.timeout,
            )
        except requests.RequestException as e:
            raise ShopifyApiError(f"Shopify request failed: {e}") from e

        if response.status_code != 200:
            raise ShopifyApiError(
                f"Shopify HTTP error: {response.status_code} {response.text}",
                status_code=response.status_code,
            )

        return response.json()

    def _graphql(self, session: ShopifySession, query: str, variables: dict | None = None) -> dict:
        try:
            response = requests.post(
                f"{self._base_url(session)}/graphql.json",
                headers=self._headers(session),
                json={"query": query, "variables": variables or {}},
                timeout=self.timeout,
            )
        except requests.RequestException as e:
            raise ShopifyApiError(f"Shopify request failed: {e}") from e

        if response.status_code != 200:
            raise ShopifyApiError(
                f"Shopify HTTP error: {response.text}", status_code=response.status_code
            )

        data = response.json()

        if "errors" in data:
            raise ShopifyApiError(f"Shopify GraphQL error: {data['errors']}")

        return data["data"]

    # ---------- Public methods ----------
    def count_products(self, session: ShopifySession) -> dict:
        return self._rest_get(session, "products/count.json")

    def create_product(self, session: ShopifySession, title: str) -> dict:
        data = self._graphql(session, PRODUCT_CREATE_MUTATION, {"input": {"title": title}})
        result = data["productCreate"]

        if result.get("userErrors"):
            raise ShopifyApiError(f"Product create failed: {result['userErrors']}")

        return result["product"]

    def register_webhook(self, session: ShopifySession, topic: str, callback_url: str) -> None:
        data = self._graphql(
            session,
            WEBHOOK_CREATE_MUTATION,
            {"topic": topic, "callbackUrl": callback_url},
        )
        errors = data.get("webhookSubscriptionCreate", {}).get("userErrors")

        if errors:
            raise ShopifyApiError(f"Webhook create failed for {topic}: {errors}")

        logger.info("Registered %s webhook for %s", topic, session.shop)
