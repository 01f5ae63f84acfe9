"""Unit tests for registry records and account id rules."""

import pytest

from src.registry.models import JsonToken, Token, TokenMetadata, is_valid_account_id


class TestAccountIds:
    """Account id length and character rules."""

    @pytest.mark.parametrize(
        "account_id",
        ["ab", "alice.near", "a-b_c.near", "registry.near", "x" * 64, "0x1.testnet"],
    )
    def test_valid(self, account_id: str) -> None:
        assert is_valid_account_id(account_id)

    @pytest.mark.parametrize(
        "account_id",
        ["a", "x" * 65, "Alice.near", "alice..near", ".alice", "alice.", "al ice", "a--b", "", None, 42],
    )
    def test_invalid(self, account_id: object) -> None:
        assert not is_valid_account_id(account_id)


class TestToken:
    """Token record serialization."""

    def test_from_dict_defaults(self) -> None:
        token = Token.from_dict({"owner_id": "alice.near", "creator_id": "bob.near"})
        assert token.token_type is None
        assert token.royalty == {}

    def test_to_dict_copies_royalty(self) -> None:
        token = Token("alice.near", "bob.near", "A", {"bob.near": 500})
        data = token.to_dict()
        data["royalty"]["x.near"] = 1
        assert token.royalty == {"bob.near": 500}


class TestTokenMetadata:
    """Metadata is a loose carrier."""

    def test_unknown_keys_ignored(self) -> None:
        metadata = TokenMetadata.from_dict({"title": "One", "colour": "red"})
        assert metadata.title == "One"
        assert not hasattr(metadata, "colour")

    def test_none_is_empty(self) -> None:
        assert TokenMetadata.from_dict(None) == TokenMetadata()


class TestJsonToken:
    """Hydrated view."""

    def test_from_parts(self) -> None:
        token = Token("alice.near", "bob.near", "A", {"bob.near": 500})
        view = JsonToken.from_parts("t1", token, TokenMetadata(title="One"))
        data = view.to_dict()
        assert data["token_id"] == "t1"
        assert data["owner_id"] == "alice.near"
        assert data["creator_id"] == "bob.near"
        assert data["token_type"] == "A"
        assert data["royalty"] == {"bob.near": 500}
        assert data["metadata"]["title"] == "One"
