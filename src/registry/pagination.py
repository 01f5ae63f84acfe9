"""Page views over insertion-ordered collections.

Offsets are absolute positions in the collection's current order, not
cursors. If the collection changes between calls, a caller walking pages
may see skips or repeats.

- page(): forward window [offset, offset + limit). limit == 0 is an empty
  page, not "no limit". An offset past the end is an empty page.
- page_from_end(): the window that ends `offset` elements before the end,
  enumerated back-to-front. An offset at or past the end is rejected.
- batch(): resolve an explicit id list, dropping ids that do not resolve.
- iter_all(): whole collection, fetched chunk_size ids at a time. With a
  lock, each chunk is read and resolved while holding it.

iter_page() and iter_page_from_end() are lazy; resolve() is called only for
ids actually yielded. iter_all() resolves one chunk at a time.
"""

from __future__ import annotations

from contextlib import AbstractContextManager, nullcontext
from typing import Any, Callable, Iterable, Iterator, TypeVar, Union

from .errors import InvalidArgumentError
from .persistent import UnorderedSet, Vector

T = TypeVar("T")

OrderedCollection = Union[Vector, UnorderedSet]


def _as_vector(collection: OrderedCollection) -> Vector:
    if isinstance(collection, UnorderedSet):
        return collection.as_vector()
    return collection


def _check_non_negative(name: str, value: object) -> int:
    if isinstance(value, bool) or not isinstance(value, int) or value < 0:
        raise InvalidArgumentError(
            f"{name} must be a non-negative integer, got {value!r}",
            param=name,
        )
    return value


def _identity(token_id: str) -> str:
    return token_id


class PaginationEngine:
    """Lazy forward, reverse and batch views over ordered id collections."""

    def __init__(self, chunk_size: int = 100) -> None:
        if chunk_size <= 0:
            raise InvalidArgumentError(f"chunk_size must be > 0, got {chunk_size}")
        self.chunk_size = chunk_size

    def iter_page(
        self,
        collection: OrderedCollection,
        start_offset: int,
        limit: int,
        resolve: Callable[[str], Any] | None = None,
    ) -> Iterator[Any]:
        start_offset = _check_non_negative("from_index", start_offset)
        limit = _check_non_negative("limit", limit)
        vector = _as_vector(collection)
        resolve = resolve or _identity
        return (resolve(token_id) for token_id in vector.iter_range(start_offset, start_offset + limit))

    def page(
        self,
        collection: OrderedCollection,
        start_offset: int,
        limit: int,
        resolve: Callable[[str], Any] | None = None,
    ) -> list[Any]:
        return list(self.iter_page(collection, start_offset, limit, resolve))

    def iter_page_from_end(
        self,
        collection: OrderedCollection,
        offset: int,
        limit: int,
        resolve: Callable[[str], Any] | None = None,
    ) -> Iterator[Any]:
        offset = _check_non_negative("from_index", offset)
        limit = _check_non_negative("limit", limit)
        vector = _as_vector(collection)
        resolve = resolve or _identity
        total = len(vector)
        if offset >= total:
            raise InvalidArgumentError(
                f"Illegal from_index {offset} for collection of {total}",
                from_index=offset,
                total=total,
            )
        limit = min(limit, total - offset)
        start = total - offset - limit
        return (resolve(token_id) for token_id in vector.iter_range_reversed(start, start + limit))

    def page_from_end(
        self,
        collection: OrderedCollection,
        offset: int,
        limit: int,
        resolve: Callable[[str], Any] | None = None,
    ) -> list[Any]:
        return list(self.iter_page_from_end(collection, offset, limit, resolve))

    def batch(self, token_ids: Iterable[str], resolve: Callable[[str], T | None]) -> list[T]:
        """Resolve each id independently. Ids that resolve to None are omitted."""
        results: list[T] = []
        for token_id in token_ids:
            item = resolve(token_id)
            if item is not None:
                results.append(item)
        return results

    def iter_all(
        self,
        collection: OrderedCollection,
        resolve: Callable[[str], Any] | None = None,
        chunk_size: int | None = None,
        lock: AbstractContextManager[Any] | None = None,
    ) -> Iterator[Any]:
        """Walk the whole collection one page at a time."""
        size = chunk_size or self.chunk_size
        offset = 0
        while True:
            with lock if lock is not None else nullcontext():
                chunk = self.page(collection, offset, size, resolve)
            yield from chunk
            if len(chunk) < size:
                return
            offset += size
