"""Unit tests for StorageCostProbe."""

import pytest

from src.registry.constants import PREFIX_STATE, PREFIX_TOKENS_PER_OWNER, PREFIX_TOKENS_PER_OWNER_INNER
from src.registry.index_manager import IndexManager
from src.registry.persistent import LookupMap, encode_value, hash_key
from src.registry.probe import StorageCostProbe
from src.registry.storage import MemoryStorage

SYNTHETIC = "a" * 64


def _expected_cost(storage: MemoryStorage, owner_id: str) -> int:
    key = PREFIX_TOKENS_PER_OWNER + SYNTHETIC.encode()
    value = encode_value({"prefix": (PREFIX_TOKENS_PER_OWNER_INNER + hash_key(SYNTHETIC)).hex()})
    return storage.record_cost(key, value) - (64 - len(owner_id))


def _probe(storage: MemoryStorage, owner_id: str = "registry.near") -> StorageCostProbe:
    indices = IndexManager(storage)
    return StorageCostProbe(storage, indices.owners, owner_id, LookupMap(storage, PREFIX_STATE))


class TestMeasure:
    """Measurement of one owner-index entry."""

    def test_synthetic_id_is_max_length(self) -> None:
        assert _probe(MemoryStorage()).synthetic_account_id == SYNTHETIC

    def test_value_for_registry_owner(self) -> None:
        storage = MemoryStorage()
        cost = _probe(storage).measure_entry_cost()
        assert cost == _expected_cost(storage, "registry.near")
        # 65-byte key + 79-byte descriptor + 40 overhead - (64 - 13)
        assert cost == 133

    @pytest.mark.parametrize("owner_id", ["ab", "registry.near", "x" * 64])
    def test_scales_with_owner_length(self, owner_id: str) -> None:
        storage = MemoryStorage()
        assert _probe(storage, owner_id).measure_entry_cost() == _expected_cost(storage, owner_id)

    def test_synthetic_entry_released(self) -> None:
        storage = MemoryStorage()
        indices = IndexManager(storage)
        state = LookupMap(storage, PREFIX_STATE)
        StorageCostProbe(storage, indices.owners, "registry.near", state).measure_entry_cost()

        assert not indices.owners.is_allocated(SYNTHETIC)
        # Only the persisted result remains
        assert len(storage) == 1
        assert state.get("extra_storage_in_bytes_per_token") is not None


class TestIdempotence:
    """The value is measured once and never recomputed."""

    def test_repeated_calls_do_not_remeasure(self) -> None:
        storage = MemoryStorage()
        probe = _probe(storage)
        first = probe.measure_entry_cost()
        usage = storage.storage_usage()
        assert probe.measure_entry_cost() == first
        assert probe.entry_cost == first
        assert storage.storage_usage() == usage

    def test_persisted_value_reused(self) -> None:
        storage = MemoryStorage()
        state = LookupMap(storage, PREFIX_STATE)
        state.insert("extra_storage_in_bytes_per_token", 999)
        assert _probe(storage).measure_entry_cost() == 999

    def test_inside_transaction(self) -> None:
        storage = MemoryStorage()
        with storage.transaction():
            cost = _probe(storage).measure_entry_cost()
        assert cost == _expected_cost(storage, "registry.near")
