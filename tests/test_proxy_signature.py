"""App proxy signature verification."""

import hashlib
import hmac

import pytest

from core.proxy_signature import ProxyQuery, canonical_query, verify_app_proxy_signature

SECRET = "hush"

# Shape of an app proxy request with a repeated parameter.
PROXY_PARAMS = {
    "extra": ["1", "2"],
    "logged_in_customer_id": "",
    "path_prefix": "/apps/awesome_reviews",
    "shop": "shop-name.myshopify.com",
    "timestamp": "1317327555",
    "signature": "ignored",
}


def _sign(canonical: str, secret: str = SECRET) -> str:
    return hmac.new(secret.encode(), canonical.encode(), hashlib.sha256).hexdigest()


def _signed(params: dict, secret: str = SECRET) -> dict:
    return {**params, "signature": _sign(canonical_query(params), secret)}


BASE = {
    "shop": "test-shop.myshopify.com",
    "path_prefix": "/apps/qbtestappclient",
    "timestamp": "1700000000",
    "logged_in_customer_id": "",
}


class TestCanonicalQuery:
    def test_sorted_without_separator(self):
        assert canonical_query({"b": "2", "a": "1", "c": "3"}) == "a=1b=2c=3"

    def test_signature_excluded(self):
        assert canonical_query({"a": "1", "signature": "abc"}) == "a=1"

    def test_repeated_keys_are_comma_joined(self):
        assert canonical_query([("extra", "1"), ("extra", "2"), ("a", "x")]) == "a=xextra=1,2"

    def test_full_proxy_request(self):
        assert canonical_query(PROXY_PARAMS) == (
            "extra=1,2logged_in_customer_id=path_prefix=/apps/awesome_reviews"
            "shop=shop-name.myshopify.comtimestamp=1317327555"
        )


class TestVerifyAppProxySignature:
    def test_valid_signature(self):
        assert verify_app_proxy_signature(_signed(BASE), SECRET) is True

    def test_matches_manual_hmac(self):
        expected = _sign(
            "logged_in_customer_id=path_prefix=/apps/qbtestappclient"
            "shop=test-shop.myshopify.comtimestamp=1700000000"
        )
        assert verify_app_proxy_signature({**BASE, "signature": expected}, SECRET) is True

    def test_parameter_order_does_not_matter(self):
        params = _signed(BASE)
        reversed_pairs = list(reversed(list(params.items())))
        assert verify_app_proxy_signature(reversed_pairs, SECRET) is True

    def test_deterministic(self):
        params = _signed(BASE)
        results = {verify_app_proxy_signature(params, SECRET) for _ in range(5)}
        assert results == {True}

    def test_every_single_character_mutation_fails(self):
        params = _signed(BASE)
        signature = params["signature"]
        for i, char in enumerate(signature):
            replacement = "0" if char != "0" else "1"
            mutated = signature[:i] + replacement + signature[i + 1:]
            assert verify_app_proxy_signature({**params, "signature": mutated}, SECRET) is False

    def test_tampered_parameter_fails(self):
        params = _signed(BASE)
        params["shop"] = "other-shop.myshopify.com"
        assert verify_app_proxy_signature(params, SECRET) is False

    def test_wrong_secret_fails(self):
        assert verify_app_proxy_signature(_signed(BASE, "other"), SECRET) is False

    def test_missing_signature(self):
        assert verify_app_proxy_signature(BASE, SECRET) is False

    @pytest.mark.parametrize("secret", [None, ""])
    def test_missing_secret(self, secret):
        assert verify_app_proxy_signature(_signed(BASE), secret) is False

    def test_repeated_signature_fails(self):
        params = _signed(BASE)
        pairs = list(params.items()) + [("signature", params["signature"])]
        assert verify_app_proxy_signature(pairs, SECRET) is False

    def test_non_ascii_signature_is_rejected(self):
        assert verify_app_proxy_signature({**BASE, "signature": "é" * 64}, SECRET) is False


class TestProxyQuery:
    def test_valid_shop(self):
        query = ProxyQuery.model_validate({"shop": "Test-Shop.myshopify.com", "other": "x"})
        assert query.shop == "test-shop.myshopify.com"

    def test_foreign_shop_is_dropped(self):
        assert ProxyQuery.model_validate({"shop": "evil.example.com"}).shop is None
