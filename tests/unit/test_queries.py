"""Unit tests for RegistryQueryHandler."""

import pytest

from src.registry.queries import QUERY_SCHEMA, RegistryQueryHandler
from src.registry.registry import TokenRegistry


@pytest.fixture
def handler(populated_registry: TokenRegistry) -> RegistryQueryHandler:
    return RegistryQueryHandler(populated_registry)


class TestValidation:
    """Query type and param validation."""

    def test_unknown_query_type(self, handler: RegistryQueryHandler) -> None:
        result = handler.execute("everything", {})
        assert result["success"] is False
        assert result["code"] == "invalid_argument"
        assert "Valid types" in result["error"]

    def test_unknown_param(self, handler: RegistryQueryHandler) -> None:
        result = handler.execute("tokens", {"page": 1})
        assert result["success"] is False
        assert result["details"] == {"param": "page"}

    def test_missing_required(self, handler: RegistryQueryHandler) -> None:
        result = handler.execute("supply_for_owner", {})
        assert result["success"] is False
        assert result["code"] == "missing_argument"

    def test_non_integer_limit(self, handler: RegistryQueryHandler) -> None:
        result = handler.execute("tokens", {"limit": "10"})
        assert result["success"] is False
        assert "must be an integer" in result["error"]

    @pytest.mark.parametrize("token_ids", ["t1", ["t1", 2], {"t1": 1}])
    def test_token_ids_must_be_list_of_strings(
        self, handler: RegistryQueryHandler, token_ids: object
    ) -> None:
        result = handler.execute("tokens_batch", {"token_ids": token_ids})
        assert result["success"] is False
        assert result["details"] == {"param": "token_ids"}

    def test_token_ids_list_accepted(self, handler: RegistryQueryHandler) -> None:
        result = handler.execute("tokens_batch", {"token_ids": ["t3", "ghost", "t1"]})
        assert [t["token_id"] for t in result["data"]] == ["t3", "t1"]

    def test_every_schema_entry_has_handler(self, handler: RegistryQueryHandler) -> None:
        for query_type in QUERY_SCHEMA:
            assert hasattr(handler, f"_query_{query_type}")


class TestQueries:
    """Successful queries wrap registry results."""

    def test_total_supply(self, handler: RegistryQueryHandler) -> None:
        assert handler.execute("total_supply", {}) == {"success": True, "data": 5}

    def test_tokens_page(self, handler: RegistryQueryHandler) -> None:
        result = handler.execute("tokens", {"from_index": 1, "limit": 2})
        assert [t["token_id"] for t in result["data"]] == ["t2", "t3"]

    def test_tokens_default_limit_is_empty(self, handler: RegistryQueryHandler) -> None:
        assert handler.execute("tokens", {})["data"] == []

    def test_tokens_for_owner(self, handler: RegistryQueryHandler) -> None:
        result = handler.execute("tokens_for_owner", {"account_id": "alice.near", "limit": 10})
        assert [t["token_id"] for t in result["data"]] == ["t1", "t2", "t5"]

    def test_token_missing_is_null(self, handler: RegistryQueryHandler) -> None:
        assert handler.execute("token", {"token_id": "ghost"}) == {"success": True, "data": None}

    def test_supply_for_type(self, handler: RegistryQueryHandler) -> None:
        assert handler.execute("supply_for_type", {"token_type": "B"})["data"] == 3

    def test_free_mint(self, handler: RegistryQueryHandler) -> None:
        data = handler.execute("free_mint", {"account_id": "alice.near"})["data"]
        assert data == {"available": False, "tokens_created": 2, "free_mints": 0}


class TestRegistryErrorsConverted:
    """RegistryError becomes the standard error response."""

    def test_from_end_out_of_range(self, handler: RegistryQueryHandler) -> None:
        result = handler.execute("tokens_from_end", {"from_index": 5, "limit": 1})
        assert result["success"] is False
        assert result["code"] == "invalid_argument"
        assert result["category"] == "validation"

    def test_token_locked_not_found(self, handler: RegistryQueryHandler) -> None:
        result = handler.execute("token_locked", {"token_id": "ghost"})
        assert result["code"] == "not_found"

    def test_token_locked_untyped(self, handler: RegistryQueryHandler) -> None:
        result = handler.execute("token_locked", {"token_id": "t2"})
        assert result["success"] is False
        assert result["code"] == "invalid_argument"
