"""Derived one-to-many indices: owner, creator and type -> token ids.

Each index is a LookupMap from key to the descriptor of a nested
UnorderedSet. The nested set lives in its own namespace derived from the
sha256 of the key, and is allocated (its descriptor written to the parent
map) the first time a token is added under that key. Sets are never
reclaimed: an owner who transfers away every token keeps a zero-length set.

Invariants maintained here:
- a token id sits in exactly one owner set (its current owner)
- a token id sits in exactly one creator set, forever
- a token id sits in at most one type set, forever

IndexManager performs no precondition checks of its own beyond detecting
index corruption. Callers validate supply, lock and royalty rules before
the first index write, inside one storage transaction.
"""

from __future__ import annotations

import logging
from enum import Enum

from .constants import (
    PREFIX_TOKENS_PER_CREATOR,
    PREFIX_TOKENS_PER_CREATOR_INNER,
    PREFIX_TOKENS_PER_OWNER,
    PREFIX_TOKENS_PER_OWNER_INNER,
    PREFIX_TOKENS_PER_TYPE,
    PREFIX_TOKENS_PER_TYPE_INNER,
)
from .errors import InvariantViolationError
from .persistent import LookupMap, UnorderedSet, nested_prefix
from .storage import KeyValueStorage

logger = logging.getLogger(__name__)


class IndexName(str, Enum):
    """The three derived indices."""

    OWNER = "owner"
    CREATOR = "creator"
    TYPE = "type"


class TokenIndex:
    """One key -> set-of-token-ids index."""

    name: IndexName

    def __init__(
        self,
        storage: KeyValueStorage,
        name: IndexName,
        prefix: bytes,
        inner_prefix: bytes,
    ) -> None:
        self._storage = storage
        self.name = name
        self._roots = LookupMap(storage, prefix)
        self._inner_prefix = inner_prefix

    def _set_for(self, key: str) -> UnorderedSet:
        # Namespace is derived, so an unallocated key reads as an empty set.
        return UnorderedSet(self._storage, nested_prefix(self._inner_prefix, key))

    def is_allocated(self, key: str) -> bool:
        return self._roots.contains_key(key)

    def allocate(self, key: str) -> UnorderedSet:
        """Return the set for key, writing its descriptor on first use."""
        descriptor = self._roots.get(key)
        if descriptor is not None:
            return UnorderedSet.from_descriptor(self._storage, descriptor)
        token_set = self._set_for(key)
        self._roots.insert(key, token_set.descriptor())
        return token_set

    def release(self, key: str) -> None:
        """Drop the descriptor for key. Only used for synthetic probe entries."""
        self._roots.remove(key)

    def entry(self, key: str) -> UnorderedSet:
        """Set for key; empty (and unallocated) if the key was never used."""
        descriptor = self._roots.get(key)
        if descriptor is None:
            return self._set_for(key)
        return UnorderedSet.from_descriptor(self._storage, descriptor)

    def count(self, key: str) -> int:
        return len(self.entry(key))

    def contains(self, key: str, token_id: str) -> bool:
        return self.entry(key).contains(token_id)

    def add(self, key: str, token_id: str) -> None:
        if not self.allocate(key).insert(token_id):
            raise InvariantViolationError(
                f"Token '{token_id}' already indexed under {self.name.value} '{key}'",
                index=self.name.value,
                key=key,
                token_id=token_id,
            )

    def discard(self, key: str, token_id: str) -> None:
        if not self.entry(key).remove(token_id):
            raise InvariantViolationError(
                f"Token '{token_id}' missing from {self.name.value} index '{key}'",
                index=self.name.value,
                key=key,
                token_id=token_id,
            )


class IndexManager:
    """Maintains the owner, creator and type indices together."""

    owners: TokenIndex
    creators: TokenIndex
    types: TokenIndex

    def __init__(self, storage: KeyValueStorage) -> None:
        self.owners = TokenIndex(
            storage, IndexName.OWNER, PREFIX_TOKENS_PER_OWNER, PREFIX_TOKENS_PER_OWNER_INNER
        )
        self.creators = TokenIndex(
            storage, IndexName.CREATOR, PREFIX_TOKENS_PER_CREATOR, PREFIX_TOKENS_PER_CREATOR_INNER
        )
        self.types = TokenIndex(
            storage, IndexName.TYPE, PREFIX_TOKENS_PER_TYPE, PREFIX_TOKENS_PER_TYPE_INNER
        )

    def index(self, name: IndexName | str) -> TokenIndex:
        name = IndexName(name)
        if name is IndexName.OWNER:
            return self.owners
        if name is IndexName.CREATOR:
            return self.creators
        return self.types

    def register(
        self,
        token_id: str,
        owner_id: str,
        creator_id: str,
        token_type: str | None = None,
    ) -> None:
        """Add a new token to every index it belongs in."""
        self.owners.add(owner_id, token_id)
        self.creators.add(creator_id, token_id)
        if token_type is not None:
            self.types.add(token_type, token_id)
        logger.debug(
            "Indexed token %s (owner=%s creator=%s type=%s)",
            token_id, owner_id, creator_id, token_type,
        )

    def reassign_owner(self, token_id: str, old_owner_id: str, new_owner_id: str) -> None:
        """Move a token between owner sets. Creator and type are untouched."""
        self.owners.discard(old_owner_id, token_id)
        self.owners.add(new_owner_id, token_id)

    def tokens_for(self, name: IndexName | str, key: str) -> UnorderedSet:
        """Ordered token ids for key; empty for unknown keys."""
        return self.index(name).entry(key)

    def supply_for_owner(self, owner_id: str) -> int:
        return self.owners.count(owner_id)

    def supply_for_creator(self, creator_id: str) -> int:
        return self.creators.count(creator_id)

    def supply_for_type(self, token_type: str) -> int:
        return self.types.count(token_type)
