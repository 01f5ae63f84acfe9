"""Unit tests for the owner, creator and type indices."""

import random

import pytest

from src.registry.errors import CapacityExceededError, InvariantViolationError
from src.registry.index_manager import IndexManager, IndexName
from src.registry.registry import TokenRegistry
from src.registry.storage import MemoryStorage


@pytest.fixture
def indices() -> IndexManager:
    return IndexManager(MemoryStorage())


class TestRegister:
    """Adding tokens to every index."""

    def test_register_all_three(self, indices: IndexManager) -> None:
        indices.register("t1", "alice.near", "bob.near", "A")
        assert indices.tokens_for(IndexName.OWNER, "alice.near").to_list() == ["t1"]
        assert indices.tokens_for(IndexName.CREATOR, "bob.near").to_list() == ["t1"]
        assert indices.tokens_for(IndexName.TYPE, "A").to_list() == ["t1"]

    def test_untyped_token_skips_type_index(self, indices: IndexManager) -> None:
        indices.register("t1", "alice.near", "alice.near")
        assert not indices.types.is_allocated("A")
        assert indices.supply_for_owner("alice.near") == 1
        assert indices.supply_for_creator("alice.near") == 1

    def test_insertion_order(self, indices: IndexManager) -> None:
        for token_id in ["t3", "t1", "t2"]:
            indices.register(token_id, "alice.near", "alice.near")
        assert indices.tokens_for("owner", "alice.near").to_list() == ["t3", "t1", "t2"]

    def test_duplicate_is_invariant_violation(self, indices: IndexManager) -> None:
        indices.register("t1", "alice.near", "alice.near")
        with pytest.raises(InvariantViolationError):
            indices.owners.add("alice.near", "t1")


class TestLookups:
    """Unknown keys read as empty."""

    def test_unknown_key_empty(self, indices: IndexManager) -> None:
        assert indices.supply_for_owner("nobody.near") == 0
        assert indices.tokens_for(IndexName.CREATOR, "nobody.near").to_list() == []
        assert not indices.owners.is_allocated("nobody.near")

    def test_index_by_name(self, indices: IndexManager) -> None:
        assert indices.index("owner") is indices.owners
        assert indices.index(IndexName.TYPE) is indices.types
        with pytest.raises(ValueError):
            indices.index("colour")


class TestReassignOwner:
    """Moving a token between owner sets."""

    def test_moves_between_owner_sets(self, indices: IndexManager) -> None:
        indices.register("t1", "alice.near", "alice.near", "A")
        indices.reassign_owner("t1", "alice.near", "bob.near")

        assert indices.supply_for_owner("alice.near") == 0
        assert indices.tokens_for(IndexName.OWNER, "bob.near").to_list() == ["t1"]
        # Creator and type untouched
        assert indices.tokens_for(IndexName.CREATOR, "alice.near").to_list() == ["t1"]
        assert indices.supply_for_type("A") == 1

    def test_emptied_set_stays_allocated(self, indices: IndexManager) -> None:
        indices.register("t1", "alice.near", "alice.near")
        indices.reassign_owner("t1", "alice.near", "bob.near")
        assert indices.owners.is_allocated("alice.near")
        assert indices.supply_for_owner("alice.near") == 0

    def test_wrong_old_owner_is_invariant_violation(self, indices: IndexManager) -> None:
        indices.register("t1", "alice.near", "alice.near")
        with pytest.raises(InvariantViolationError):
            indices.reassign_owner("t1", "carol.near", "bob.near")

    def test_remaining_order_preserved(self, indices: IndexManager) -> None:
        for token_id in ["t1", "t2", "t3"]:
            indices.register(token_id, "alice.near", "alice.near")
        indices.reassign_owner("t1", "alice.near", "bob.near")
        assert indices.tokens_for(IndexName.OWNER, "alice.near").to_list() == ["t2", "t3"]


class TestRandomSequences:
    """Indices stay consistent with the token store across mixed mints and transfers."""

    ACCOUNTS = ["alice.near", "bob.near", "carol.near", "dave.near"]
    TYPES = [None, "A", "B", "C"]
    CAPS = {"A": 30, "B": 30, "C": 4}

    @pytest.mark.parametrize("seed", [0, 1, 7, 42])
    def test_mints_and_transfers(self, seed: int) -> None:
        rng = random.Random(seed)
        reg = TokenRegistry(MemoryStorage(), owner_id="registry.near")
        reg.add_token_types("registry.near", self.CAPS, unlocked=True)
        owners: dict[str, str] = {}
        creators: dict[str, str] = {}
        types: dict[str, str | None] = {}

        for step in range(150):
            if not owners or rng.random() < 0.4:
                token_id = f"t{step}"
                owner = rng.choice(self.ACCOUNTS)
                creator = rng.choice(self.ACCOUNTS)
                token_type = rng.choice(self.TYPES)
                full = (
                    token_type is not None
                    and list(types.values()).count(token_type) >= self.CAPS[token_type]
                )
                if full:
                    with pytest.raises(CapacityExceededError):
                        reg.nft_mint(token_id, {}, owner, creator, token_type=token_type)
                else:
                    reg.nft_mint(token_id, {}, owner, creator, token_type=token_type)
                    owners[token_id] = owner
                    creators[token_id] = creator
                    types[token_id] = token_type
            else:
                token_id = rng.choice(sorted(owners))
                receiver = rng.choice([a for a in self.ACCOUNTS if a != owners[token_id]])
                reg.nft_transfer(token_id, owners[token_id], receiver)
                owners[token_id] = receiver

            reg.check_consistency()

        for account in self.ACCOUNTS:
            assert reg.nft_supply_for_owner(account) == list(owners.values()).count(account)
            assert reg.nft_supply_for_creator(account) == list(creators.values()).count(account)
        for token_type in ("A", "B", "C"):
            assert reg.nft_supply_for_type(token_type) == list(types.values()).count(token_type)
        assert reg.nft_total_supply() == len(owners)
