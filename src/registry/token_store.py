"""Canonical by-id stores.

TokenStore holds the authoritative Token record for each id (point lookups
only). MetadataStore holds descriptive metadata and is enumerable: its key
order is the registry-wide enumeration order and its length is the total
supply.
"""

from __future__ import annotations

from .constants import PREFIX_TOKEN_METADATA_BY_ID, PREFIX_TOKENS_BY_ID
from .models import Token, TokenMetadata
from .persistent import LookupMap, UnorderedMap, Vector
from .storage import KeyValueStorage


class TokenStore:
    """Map of token id -> Token."""

    def __init__(self, storage: KeyValueStorage) -> None:
        self._tokens = LookupMap(storage, PREFIX_TOKENS_BY_ID)

    def get(self, token_id: str) -> Token | None:
        data = self._tokens.get(token_id)
        return None if data is None else Token.from_dict(data)

    def exists(self, token_id: str) -> bool:
        return self._tokens.contains_key(token_id)

    def put(self, token_id: str, token: Token) -> None:
        self._tokens.insert(token_id, token.to_dict())


class MetadataStore:
    """Enumerable map of token id -> TokenMetadata."""

    def __init__(self, storage: KeyValueStorage) -> None:
        self._metadata = UnorderedMap(storage, PREFIX_TOKEN_METADATA_BY_ID)

    def get(self, token_id: str) -> TokenMetadata | None:
        data = self._metadata.get(token_id)
        return None if data is None else TokenMetadata.from_dict(data)

    def exists(self, token_id: str) -> bool:
        return self._metadata.contains_key(token_id)

    def put(self, token_id: str, metadata: TokenMetadata) -> None:
        self._metadata.insert(token_id, metadata.to_dict())

    def ids(self) -> Vector:
        """All token ids in insertion order."""
        return self._metadata.keys_as_vector()

    def __len__(self) -> int:
        return len(self._metadata)
