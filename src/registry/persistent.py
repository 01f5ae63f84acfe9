"""Persistent collections over a KeyValueStorage.

Each collection owns a byte prefix; every key it writes starts with that
prefix, so collections never see each other's records. Values are stored as
compact, key-sorted JSON so the same value always costs the same bytes.

- LookupMap: point lookups, no enumeration
- Vector: indexed, append-ordered sequence
- UnorderedSet: duplicate-free, insertion-ordered set (Vector + index map)
- UnorderedMap: enumerable map whose key order is insertion order

Nested per-key sets (owner -> set of token ids, ...) get their prefix from
nested_prefix(inner_prefix, parent_key): the inner prefix followed by the
sha256 digest of the parent key. Fixed-length digests keep two parent keys
from ever deriving overlapping namespaces.

Layout under a collection prefix P:
    Vector:        P + b"n" -> length,  P + b"i" + u64 -> element
    UnorderedSet:  P + b"v" ... (its Vector), P + b"e" + element -> position
    UnorderedMap:  P + b"k" ... (key Vector), P + b"x" + key -> position,
                   P + b"d" + key -> value
"""

from __future__ import annotations

import hashlib
import json
from typing import Any, Iterator

from .storage import KeyValueStorage


def encode_value(value: Any) -> bytes:
    return json.dumps(value, separators=(",", ":"), sort_keys=True).encode("utf-8")


def decode_value(raw: bytes) -> Any:
    return json.loads(raw.decode("utf-8"))


def hash_key(key: str) -> bytes:
    """sha256 digest of a parent key, used to derive nested namespaces."""
    return hashlib.sha256(key.encode("utf-8")).digest()


def nested_prefix(inner_prefix: bytes, parent_key: str) -> bytes:
    return inner_prefix + hash_key(parent_key)


class LookupMap:
    """String-keyed map with point lookups only."""

    def __init__(self, storage: KeyValueStorage, prefix: bytes) -> None:
        self._storage = storage
        self.prefix = prefix

    def _raw_key(self, key: str) -> bytes:
        return self.prefix + key.encode("utf-8")

    def get(self, key: str) -> Any | None:
        raw = self._storage.get(self._raw_key(key))
        return None if raw is None else decode_value(raw)

    def contains_key(self, key: str) -> bool:
        return self._storage.has(self._raw_key(key))

    def insert(self, key: str, value: Any) -> Any | None:
        """Store value under key, returning the previous value if any."""
        previous = self.get(key)
        self._storage.set(self._raw_key(key), encode_value(value))
        return previous

    def remove(self, key: str) -> Any | None:
        previous = self.get(key)
        if previous is not None:
            self._storage.remove(self._raw_key(key))
        return previous


class Vector:
    """Append-ordered sequence. Length is stored under its own key."""

    def __init__(self, storage: KeyValueStorage, prefix: bytes) -> None:
        self._storage = storage
        self.prefix = prefix
        self._len_key = prefix + b"n"

    def _index_key(self, index: int) -> bytes:
        return self.prefix + b"i" + index.to_bytes(8, "big")

    def __len__(self) -> int:
        raw = self._storage.get(self._len_key)
        return 0 if raw is None else int(decode_value(raw))

    def _set_len(self, length: int) -> None:
        self._storage.set(self._len_key, encode_value(length))

    def get(self, index: int) -> Any | None:
        if index < 0 or index >= len(self):
            return None
        raw = self._storage.get(self._index_key(index))
        return None if raw is None else decode_value(raw)

    def append(self, value: Any) -> int:
        """Append and return the new element's position."""
        index = len(self)
        self._storage.set(self._index_key(index), encode_value(value))
        self._set_len(index + 1)
        return index

    def replace(self, index: int, value: Any) -> None:
        if index < 0 or index >= len(self):
            raise IndexError(f"Vector index {index} out of range")
        self._storage.set(self._index_key(index), encode_value(value))

    def pop(self) -> Any | None:
        length = len(self)
        if length == 0:
            return None
        last = self.get(length - 1)
        self._storage.remove(self._index_key(length - 1))
        self._set_len(length - 1)
        return last

    def iter_range(self, start: int, stop: int) -> Iterator[Any]:
        """Lazily yield elements in [start, stop), clamped to the length."""
        stop = min(stop, len(self))
        for index in range(max(start, 0), stop):
            yield self.get(index)

    def iter_range_reversed(self, start: int, stop: int) -> Iterator[Any]:
        """Lazily yield elements in [start, stop) back-to-front."""
        stop = min(stop, len(self))
        for index in range(stop - 1, max(start, 0) - 1, -1):
            yield self.get(index)

    def __iter__(self) -> Iterator[Any]:
        return self.iter_range(0, len(self))

    def to_list(self) -> list[Any]:
        return list(self)


class UnorderedSet:
    """Duplicate-free set of strings that remembers insertion order.

    Removal shifts later elements down one position, so the remaining
    elements keep their relative insertion order.
    """

    def __init__(self, storage: KeyValueStorage, prefix: bytes) -> None:
        self._storage = storage
        self.prefix = prefix
        self._elements = Vector(storage, prefix + b"v")

    @classmethod
    def from_descriptor(cls, storage: KeyValueStorage, descriptor: dict[str, Any]) -> UnorderedSet:
        return cls(storage, bytes.fromhex(descriptor["prefix"]))

    def descriptor(self) -> dict[str, Any]:
        """Value stored in a parent map to locate this set."""
        return {"prefix": self.prefix.hex()}

    def _position_key(self, element: str) -> bytes:
        return self.prefix + b"e" + element.encode("utf-8")

    def _position(self, element: str) -> int | None:
        raw = self._storage.get(self._position_key(element))
        return None if raw is None else int(decode_value(raw))

    def __len__(self) -> int:
        return len(self._elements)

    def contains(self, element: str) -> bool:
        return self._position(element) is not None

    def __contains__(self, element: object) -> bool:
        return isinstance(element, str) and self.contains(element)

    def insert(self, element: str) -> bool:
        """Add element at the end. Returns False if already present."""
        if self.contains(element):
            return False
        position = self._elements.append(element)
        self._storage.set(self._position_key(element), encode_value(position))
        return True

    def remove(self, element: str) -> bool:
        """Remove element. Returns False if it was not present."""
        position = self._position(element)
        if position is None:
            return False
        length = len(self._elements)
        for index in range(position + 1, length):
            moved = self._elements.get(index)
            self._elements.replace(index - 1, moved)
            self._storage.set(self._position_key(moved), encode_value(index - 1))
        self._elements.pop()
        self._storage.remove(self._position_key(element))
        return True

    def as_vector(self) -> Vector:
        return self._elements

    def __iter__(self) -> Iterator[str]:
        return iter(self._elements)

    def to_list(self) -> list[str]:
        return self._elements.to_list()


class UnorderedMap:
    """Enumerable map. Key order is insertion order; re-inserting a key
    updates its value in place."""

    def __init__(self, storage: KeyValueStorage, prefix: bytes) -> None:
        self._storage = storage
        self.prefix = prefix
        self._keys = Vector(storage, prefix + b"k")

    def _position_key(self, key: str) -> bytes:
        return self.prefix + b"x" + key.encode("utf-8")

    def _value_key(self, key: str) -> bytes:
        return self.prefix + b"d" + key.encode("utf-8")

    def __len__(self) -> int:
        return len(self._keys)

    def contains_key(self, key: str) -> bool:
        return self._storage.has(self._position_key(key))

    def get(self, key: str) -> Any | None:
        raw = self._storage.get(self._value_key(key))
        return None if raw is None else decode_value(raw)

    def insert(self, key: str, value: Any) -> Any | None:
        previous = self.get(key)
        if not self.contains_key(key):
            position = self._keys.append(key)
            self._storage.set(self._position_key(key), encode_value(position))
        self._storage.set(self._value_key(key), encode_value(value))
        return previous

    def keys_as_vector(self) -> Vector:
        return self._keys

    def keys(self) -> Iterator[str]:
        return iter(self._keys)
