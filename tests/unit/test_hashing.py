"""Tests for the deterministic hashing helpers."""

from datetime import date
from decimal import Decimal
from uuid import UUID

import pytest

from ledger_kernel.utils.hashing import chain_hash, ordered_json, sha256_hex


class TestSha256:
    def test_known_digest(self):
        assert sha256_hex("") == (
            "e3b0c44298fc1c149afbf4c8996fb92427ae41e4649b934ca495991b7852b855"
        )

    def test_lowercase_hex(self):
        digest = sha256_hex("INV-0001")
        assert len(digest) == 64
        assert digest == digest.lower()


class TestChainHash:
    def test_genesis_uses_empty_prefix(self):
        assert chain_hash("payload", None) == sha256_hex("|payload")

    def test_previous_hash_prefixed(self):
        assert chain_hash("payload", "abc") == sha256_hex("abc|payload")

    def test_none_and_empty_previous_agree(self):
        assert chain_hash("payload", None) == chain_hash("payload", "")


class TestOrderedJson:
    def test_keeps_key_order_and_is_compact(self):
        assert ordered_json({"b": 1, "a": [1, 2]}) == '{"b":1,"a":[1,2]}'

    def test_domain_types(self):
        text = ordered_json(
            {
                "amount": Decimal("10.50"),
                "date": date(2025, 1, 15),
                "id": UUID("00000000-0000-0000-0000-000000000001"),
            }
        )
        assert text == (
            '{"amount":"10.50","date":"2025-01-15",'
            '"id":"00000000-0000-0000-0000-000000000001"}'
        )

    def test_non_ascii_kept(self):
        assert ordered_json({"d": "Zahlung für März"}) == '{"d":"Zahlung für März"}'

    def test_unsupported_type_rejected(self):
        with pytest.raises(TypeError):
            ordered_json({"x": object()})
