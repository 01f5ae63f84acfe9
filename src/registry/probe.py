"""Storage cost of one per-owner index entry.

Measured once when the registry is created:

1. read storage usage
2. allocate an owner-index entry (empty nested set) for a synthetic
   64-character account id, the longest id allowed
3. read usage again; the delta is the cost of one entry at maximum key length
4. subtract (64 - len(registry owner id)) to scale the key down to the
   registry owner's id length
5. release the synthetic entry

The result is persisted and returned unchanged for the registry's whole
lifetime. Callers with ids longer than the owner's are charged the
owner-length figure.
"""

from __future__ import annotations

import logging

from .constants import MAX_ACCOUNT_ID_LEN, PROBE_ACCOUNT_CHAR
from .index_manager import TokenIndex
from .persistent import LookupMap
from .storage import KeyValueStorage

logger = logging.getLogger(__name__)

_ENTRY_COST_KEY = "extra_storage_in_bytes_per_token"


class StorageCostProbe:
    """Measures and caches the per-entry storage cost."""

    def __init__(
        self,
        storage: KeyValueStorage,
        owner_index: TokenIndex,
        owner_id: str,
        state: LookupMap,
    ) -> None:
        self._storage = storage
        self._owner_index = owner_index
        self._owner_id = owner_id
        self._state = state
        self._cached: int | None = None

    @property
    def synthetic_account_id(self) -> str:
        return PROBE_ACCOUNT_CHAR * MAX_ACCOUNT_ID_LEN

    def measure_entry_cost(self) -> int:
        """Return the per-entry cost, measuring it only if never measured."""
        if self._cached is not None:
            return self._cached
        persisted = self._state.get(_ENTRY_COST_KEY)
        if persisted is not None:
            self._cached = int(persisted)
            return self._cached

        synthetic = self.synthetic_account_id
        initial_usage = self._storage.storage_usage()
        self._owner_index.allocate(synthetic)
        entry_bytes = self._storage.storage_usage() - initial_usage
        owner_length_delta = len(synthetic) - len(self._owner_id)
        self._owner_index.release(synthetic)

        cost = entry_bytes - owner_length_delta
        self._state.insert(_ENTRY_COST_KEY, cost)
        self._cached = cost
        logger.info(
            "Measured per-entry storage cost: %d bytes (raw %d, owner id delta %d)",
            cost, entry_bytes, owner_length_delta,
        )
        return cost

    @property
    def entry_cost(self) -> int:
        return self.measure_entry_cost()
