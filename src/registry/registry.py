"""Token registry - the one entry point for mutations and queries.

Ties the canonical stores, the three derived indices, supply governance,
royalty ceilings and the storage-cost probe together.

Atomicity:
    Every public mutation runs under one registry-wide lock and inside one
    storage transaction. All preconditions (token id unused, type unlocked
    and under cap, royalty ceilings, ownership) are checked before the first
    write; if anything raises, the transaction discards every buffered
    write, so no index ever observes half a mutation. Queries take the same
    lock, so a reader on another thread sees the state before or after a
    mutation, never the buffered writes in between. Events are logged under
    the lock right after commit, so their sequence follows commit order.

Usage:
    registry = TokenRegistry(MemoryStorage(), owner_id="registry.near")
    registry.add_token_types("registry.near", {"A": 2}, unlocked=True)
    registry.nft_mint("t1", {"title": "One"}, owner_id="alice.near",
                      creator_id="alice.near", token_type="A")
    registry.nft_supply_for_type("A")  # 1
"""

from __future__ import annotations

import logging
import threading
from typing import TYPE_CHECKING, Any, Iterable, Iterator, Mapping

from .constants import PREFIX_STATE, STATE_VERSION
from .errors import (
    DuplicateTokenError,
    InvalidAccountIdError,
    InvalidArgumentError,
    InvariantViolationError,
    NotAuthorizedError,
    NotOwnerError,
    TokenNotFoundError,
)
from .index_manager import IndexManager, IndexName
from .logger import EventLogger
from .models import JsonToken, Token, TokenMetadata, is_valid_account_id
from .pagination import PaginationEngine
from .persistent import LookupMap
from .probe import StorageCostProbe
from .royalty import RoyaltyCapValidator
from .storage import KeyValueStorage, build_storage
from .supply import SupplyGovernor
from .token_store import MetadataStore, TokenStore

if TYPE_CHECKING:
    from ..config_schema import AppConfig, RoyaltyBackfillConfig

logger = logging.getLogger(__name__)


def _check_account(account_id: object) -> str:
    if not is_valid_account_id(account_id):
        raise InvalidAccountIdError(str(account_id))
    return account_id  # type: ignore[return-value]


class TokenRegistry:
    """Persistent multi-index token registry."""

    def __init__(
        self,
        storage: KeyValueStorage,
        owner_id: str,
        supply_cap_by_type: Mapping[str, int] | None = None,
        unlocked: bool | None = None,
        use_storage_fees: bool = True,
        free_mints: int = 0,
        max_royalty_entries: int = 10,
        royalty_backfill: "RoyaltyBackfillConfig | None" = None,
        metadata: Mapping[str, Any] | None = None,
        chunk_size: int = 100,
        event_logger: EventLogger | None = None,
    ) -> None:
        _check_account(owner_id)

        self._storage = storage
        self._lock = threading.RLock()
        self._state = LookupMap(storage, PREFIX_STATE)
        self.tokens = TokenStore(storage)
        self.metadata = MetadataStore(storage)
        self.indices = IndexManager(storage)
        self.supply = SupplyGovernor(storage, self.indices.supply_for_type)
        self.royalties = RoyaltyCapValidator(max_entries=max_royalty_entries)
        self.pagination = PaginationEngine(chunk_size=chunk_size)
        self.events = event_logger or EventLogger()
        self._royalty_backfill = royalty_backfill

        persisted_owner = self._state.get("owner_id")
        if persisted_owner is not None and persisted_owner != owner_id:
            raise InvalidArgumentError(
                f"Storage belongs to registry owned by '{persisted_owner}', not '{owner_id}'",
                persisted_owner=persisted_owner,
                owner_id=owner_id,
            )

        self._probe = StorageCostProbe(storage, self.indices.owners, owner_id, self._state)

        if persisted_owner is None:
            with self._lock:
                with self._storage.transaction():
                    self._state.insert("owner_id", owner_id)
                    self._state.insert("contract_royalty", 0)
                    self._state.insert("use_storage_fees", use_storage_fees)
                    self._state.insert("free_mints", free_mints)
                    self._state.insert("version", STATE_VERSION)
                    self._state.insert("metadata", dict(metadata or {}))
                    self.supply.declare_many(dict(supply_cap_by_type or {}), unlocked=unlocked)
                    entry_cost = self._probe.measure_entry_cost()
                self.events.log("storage_probe", {"extra_storage_in_bytes_per_token": entry_cost})
            logger.info("Initialized token registry owned by %s", owner_id)
        else:
            with self._lock:
                self._probe.measure_entry_cost()
            logger.info("Opened existing token registry owned by %s", owner_id)

    @classmethod
    def from_config(
        cls,
        config: "AppConfig",
        storage: KeyValueStorage | None = None,
        event_logger: EventLogger | None = None,
    ) -> "TokenRegistry":
        """Create a registry from validated config.

        Args:
            config: Validated AppConfig
            storage: Backend to use; built from config.storage if omitted
            event_logger: Event sink; a JSONL file logger is created when
                config.logging.events_enabled is set
        """
        if storage is None:
            storage = build_storage(config.storage)
        if event_logger is None and config.logging.events_enabled:
            event_logger = EventLogger(config.logging.events_file)
        reg = config.registry
        return cls(
            storage,
            owner_id=reg.owner_id,
            supply_cap_by_type=reg.supply_cap_by_type,
            unlocked=reg.unlocked,
            use_storage_fees=reg.use_storage_fees,
            free_mints=reg.free_mints,
            max_royalty_entries=reg.max_royalty_entries,
            royalty_backfill=reg.royalty_backfill,
            metadata=reg.metadata.model_dump(),
            chunk_size=config.pagination.chunk_size,
            event_logger=event_logger,
        )

    # ------------------------------------------------------------------
    # Properties
    # ------------------------------------------------------------------

    @property
    def owner_id(self) -> str:
        with self._lock:
            return str(self._state.get("owner_id"))

    @property
    def extra_storage_in_bytes_per_token(self) -> int:
        """Per-entry storage cost measured once at initialization."""
        with self._lock:
            return self._probe.measure_entry_cost()

    def _assert_owner(self, caller_id: str, operation: str) -> None:
        if caller_id != self.owner_id:
            raise NotAuthorizedError(caller_id, operation)

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    def nft_mint(
        self,
        token_id: str,
        metadata: TokenMetadata | Mapping[str, Any] | None,
        owner_id: str,
        creator_id: str,
        token_type: str | None = None,
        perpetual_royalties: Mapping[str, int] | None = None,
    ) -> JsonToken:
        """Create a token and index it.

        Raises:
            InvalidArgumentError: Empty token id or type label.
            InvalidAccountIdError: Bad owner, creator or royalty account.
            DuplicateTokenError: token_id already registered.
            LockedTypeError: token_type is locked.
            CapacityExceededError: token_type at cap or undeclared.
            RoyaltyCapExceededError: perpetual_royalties above the minter cap.
        """
        if not isinstance(token_id, str) or not token_id:
            raise InvalidArgumentError(f"Token id must be a non-empty string, got {token_id!r}")
        if token_type is not None and (not isinstance(token_type, str) or not token_type):
            raise InvalidArgumentError(f"Token type must be a non-empty string, got {token_type!r}")
        _check_account(owner_id)
        _check_account(creator_id)
        if not isinstance(metadata, TokenMetadata):
            metadata = TokenMetadata.from_dict(dict(metadata or {}))
        royalty = dict(perpetual_royalties or {})

        with self._lock:
            with self._storage.transaction():
                if self.tokens.exists(token_id) or self.metadata.exists(token_id):
                    raise DuplicateTokenError(token_id)
                if token_type is not None:
                    self.supply.check_can_create(token_type)
                self.royalties.validate_minter_table(royalty)

                token = Token(
                    owner_id=owner_id,
                    creator_id=creator_id,
                    token_type=token_type,
                    royalty=royalty,
                )
                self.tokens.put(token_id, token)
                self.metadata.put(token_id, metadata)
                self.indices.register(token_id, owner_id, creator_id, token_type)
            self.events.log_mint(token_id, owner_id, creator_id, token_type)
        logger.info("Minted %s for %s (type=%s)", token_id, owner_id, token_type)
        return JsonToken.from_parts(token_id, token, metadata)

    def nft_transfer(
        self,
        token_id: str,
        sender_id: str,
        receiver_id: str,
        memo: str | None = None,
    ) -> None:
        """Move a token from its current owner to receiver_id.

        Raises:
            TokenNotFoundError: Unknown token.
            NotOwnerError: sender_id is not the current owner.
            InvalidAccountIdError: receiver_id malformed.
            InvalidArgumentError: sender and receiver are the same account.
        """
        _check_account(receiver_id)
        with self._lock:
            with self._storage.transaction():
                token = self.tokens.get(token_id)
                if token is None:
                    raise TokenNotFoundError(token_id)
                if token.owner_id != sender_id:
                    raise NotOwnerError(token_id, sender_id)
                if sender_id == receiver_id:
                    raise InvalidArgumentError(
                        "The token owner and the receiver should be different",
                        token_id=token_id,
                    )
                token.owner_id = receiver_id
                self.tokens.put(token_id, token)
                self.indices.reassign_owner(token_id, sender_id, receiver_id)
            self.events.log_transfer(token_id, sender_id, receiver_id, memo)
        logger.info("Transferred %s from %s to %s", token_id, sender_id, receiver_id)

    def add_token_types(
        self,
        caller_id: str,
        supply_cap_by_type: Mapping[str, int],
        unlocked: bool | None = None,
    ) -> list[str]:
        """Declare types or raise their caps (owner only).

        Types are locked when `unlocked` is None; an explicit true or false
        leaves their lock state alone. If a royalty backfill is configured
        and its trigger label is in the batch, the backfill runs in the same
        mutation.

        Returns:
            Newly declared labels.
        """
        self._assert_owner(caller_id, "add_token_types")
        backfill = None
        if (
            self._royalty_backfill is not None
            and self._royalty_backfill.enabled
            and self._royalty_backfill.trigger_type in supply_cap_by_type
        ):
            backfill = self._royalty_backfill
        with self._lock:
            with self._storage.transaction():
                declared = self.supply.declare_many(supply_cap_by_type, unlocked=unlocked)
                updated = 0
                if backfill is not None:
                    updated = self._apply_royalty_backfill(backfill.account_id, backfill.basis_points)

            self.events.log("token_types_declared", {
                "supply_cap_by_type": dict(supply_cap_by_type),
                "new_types": declared,
                "locked": unlocked is None,
            })
            if backfill is not None:
                self.events.log("royalty_backfill", {
                    "account_id": backfill.account_id,
                    "basis_points": backfill.basis_points,
                    "tokens_updated": updated,
                })
        return declared

    def lock_token_types(self, caller_id: str, token_types: Iterable[str]) -> list[str]:
        """Stop creation of the given types (owner only)."""
        self._assert_owner(caller_id, "lock_token_types")
        with self._lock:
            with self._storage.transaction():
                changed = self.supply.lock(list(token_types))
            self.events.log("token_types_locked", {"token_types": changed})
        return changed

    def unlock_token_types(self, caller_id: str, token_types: Iterable[str]) -> list[str]:
        """Allow creation of the given types again (owner only)."""
        self._assert_owner(caller_id, "unlock_token_types")
        with self._lock:
            with self._storage.transaction():
                changed = self.supply.unlock(list(token_types))
            self.events.log("token_types_unlocked", {"token_types": changed})
        return changed

    def set_contract_royalty(self, caller_id: str, contract_royalty: int) -> None:
        """Set the registry-wide operator royalty (owner only, <= 1000 bp)."""
        self._assert_owner(caller_id, "set_contract_royalty")
        self.royalties.validate_operator_rate(self.owner_id, contract_royalty)
        with self._lock:
            with self._storage.transaction():
                self._state.insert("contract_royalty", contract_royalty)
            self.events.log("contract_royalty_set", {"contract_royalty": contract_royalty})

    def set_use_storage_fees(self, caller_id: str, use_storage_fees: bool) -> None:
        self._assert_owner(caller_id, "set_use_storage_fees")
        with self._lock, self._storage.transaction():
            self._state.insert("use_storage_fees", bool(use_storage_fees))

    def backfill_royalty(self, caller_id: str, account_id: str, basis_points: int) -> int:
        """Add a fixed royalty entry for account_id to every token (owner only).

        Maintenance operation for repairing existing state. Every token is
        checked against the minter cap before any token is rewritten.

        Returns:
            Number of tokens updated.
        """
        self._assert_owner(caller_id, "backfill_royalty")
        with self._lock:
            with self._storage.transaction():
                updated = self._apply_royalty_backfill(account_id, basis_points)
            self.events.log("royalty_backfill", {
                "account_id": account_id,
                "basis_points": basis_points,
                "tokens_updated": updated,
            })
        return updated

    def _apply_royalty_backfill(self, account_id: str, basis_points: int) -> int:
        entry = {account_id: basis_points}
        pending: list[tuple[str, Token]] = []
        for token_id in self.metadata.ids():
            token = self.tokens.get(token_id)
            if token is None:
                continue
            self.royalties.validate(entry, is_operator_contribution=False, existing=token.royalty)
            pending.append((token_id, token))

        for token_id, token in pending:
            token.royalty[account_id] = basis_points
            self.tokens.put(token_id, token)
        logger.info("Backfilled %d bp royalty for %s on %d tokens", basis_points, account_id, len(pending))
        return len(pending)

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def _hydrate(self, token_id: str) -> JsonToken:
        """Composite view for an id reached through an index or enumeration."""
        token = self.tokens.get(token_id)
        metadata = self.metadata.get(token_id)
        if token is None or metadata is None:
            raise InvariantViolationError(
                f"Token '{token_id}' is enumerated but missing from the canonical store",
                token_id=token_id,
            )
        return JsonToken.from_parts(token_id, token, metadata)

    def nft_token(self, token_id: str) -> JsonToken | None:
        with self._lock:
            token = self.tokens.get(token_id)
            if token is None:
                return None
            metadata = self.metadata.get(token_id) or TokenMetadata()
        return JsonToken.from_parts(token_id, token, metadata)

    def nft_total_supply(self) -> int:
        with self._lock:
            return len(self.metadata)

    def nft_supply_for_owner(self, account_id: str) -> int:
        with self._lock:
            return self.indices.supply_for_owner(account_id)

    def nft_supply_for_creator(self, account_id: str) -> int:
        with self._lock:
            return self.indices.supply_for_creator(account_id)

    def nft_supply_for_type(self, token_type: str) -> int:
        with self._lock:
            return self.indices.supply_for_type(token_type)

    def nft_tokens(self, from_index: int = 0, limit: int = 0) -> list[JsonToken]:
        """Page over every token in creation order. limit=0 is an empty page."""
        with self._lock:
            return self.pagination.page(self.metadata.ids(), from_index, limit, self._hydrate)

    def nft_tokens_for_owner(self, account_id: str, from_index: int = 0, limit: int = 0) -> list[JsonToken]:
        return self._tokens_for(IndexName.OWNER, account_id, from_index, limit)

    def nft_tokens_for_creator(self, account_id: str, from_index: int = 0, limit: int = 0) -> list[JsonToken]:
        return self._tokens_for(IndexName.CREATOR, account_id, from_index, limit)

    def nft_tokens_for_type(self, token_type: str, from_index: int = 0, limit: int = 0) -> list[JsonToken]:
        return self._tokens_for(IndexName.TYPE, token_type, from_index, limit)

    def _tokens_for(self, index: IndexName, key: str, from_index: int, limit: int) -> list[JsonToken]:
        with self._lock:
            return self.pagination.page(self.indices.tokens_for(index, key), from_index, limit, self._hydrate)

    def nft_tokens_from_end(self, from_index: int, limit: int) -> list[JsonToken]:
        """Newest-first page. Raises InvalidArgumentError if from_index >= total."""
        with self._lock:
            return self.pagination.page_from_end(self.metadata.ids(), from_index, limit, self._hydrate)

    def nft_tokens_batch(self, token_ids: Iterable[str]) -> list[JsonToken]:
        """Hydrate an explicit id list; unknown ids are left out of the result."""
        with self._lock:
            return self.pagination.batch(token_ids, self.nft_token)

    def iter_tokens(
        self,
        index: IndexName | str | None = None,
        key: str | None = None,
    ) -> Iterator[JsonToken]:
        """Lazily walk every token, or every token under one index key.

        Each chunk is read under the registry lock, so a mutation may land
        between chunks but never inside one.
        """
        if index is None:
            collection = self.metadata.ids()
        else:
            if key is None:
                raise InvalidArgumentError("key is required when index is given")
            collection = self.indices.tokens_for(index, key).as_vector()
        return self.pagination.iter_all(collection, self._hydrate, lock=self._lock)

    def is_token_locked(self, token_id: str) -> bool:
        """Whether the token's type is locked.

        Raises:
            TokenNotFoundError: Unknown token.
            InvalidArgumentError: The token has no type.
        """
        with self._lock:
            token = self.tokens.get(token_id)
            if token is None:
                raise TokenNotFoundError(token_id)
            if token.token_type is None:
                raise InvalidArgumentError("Token must have type", token_id=token_id)
            return self.supply.is_locked(token.token_type)

    def get_supply_caps(self) -> dict[str, int]:
        with self._lock:
            return self.supply.supply_caps()

    def get_token_types_locked(self) -> list[str]:
        with self._lock:
            return self.supply.locked_types()

    def get_contract_royalty(self) -> int:
        with self._lock:
            return int(self._state.get("contract_royalty") or 0)

    def get_version(self) -> int:
        with self._lock:
            return int(self._state.get("version") or 0)

    def nft_metadata(self) -> dict[str, Any]:
        with self._lock:
            return dict(self._state.get("metadata") or {})

    def get_use_storage_fees(self) -> bool:
        with self._lock:
            return bool(self._state.get("use_storage_fees"))

    def get_free_mints(self) -> int:
        with self._lock:
            return int(self._state.get("free_mints") or 0)

    def get_tokens_created(self, account_id: str) -> int:
        with self._lock:
            return self.indices.supply_for_creator(account_id)

    def is_free_mint_available(self, account_id: str) -> bool:
        """True when storage fees are off and the account is under its free quota."""
        with self._lock:
            if self.get_use_storage_fees():
                return False
            return self.get_tokens_created(account_id) < self.get_free_mints()

    # ------------------------------------------------------------------
    # Diagnostics
    # ------------------------------------------------------------------

    def check_consistency(self) -> dict[str, int]:
        """Verify that the canonical store and the indices agree.

        Walks every token, checks its membership in the owner, creator and
        type sets named by its record, then checks that each of those sets
        holds no ids whose record points elsewhere and that no type exceeds
        its cap.

        Returns:
            Counts of tokens, owners, creators and types checked.

        Raises:
            InvariantViolationError: On the first divergence found.
        """
        owners: set[str] = set()
        creators: set[str] = set()
        types: set[str] = set()
        total = 0
        typed = 0
        with self._lock:
            for token_id in self.metadata.ids():
                token = self.tokens.get(token_id)
                if token is None:
                    raise InvariantViolationError(
                        f"Token '{token_id}' has metadata but no record", token_id=token_id
                    )
                total += 1
                owners.add(token.owner_id)
                creators.add(token.creator_id)
                checks = [
                    (IndexName.OWNER, token.owner_id),
                    (IndexName.CREATOR, token.creator_id),
                ]
                if token.token_type is not None:
                    typed += 1
                    types.add(token.token_type)
                    checks.append((IndexName.TYPE, token.token_type))
                for index, key in checks:
                    if not self.indices.index(index).contains(key, token_id):
                        raise InvariantViolationError(
                            f"Token '{token_id}' missing from {index.value} index '{key}'",
                            token_id=token_id,
                            index=index.value,
                            key=key,
                        )

            for index, keys, field in (
                (IndexName.OWNER, owners, "owner_id"),
                (IndexName.CREATOR, creators, "creator_id"),
                (IndexName.TYPE, types, "token_type"),
            ):
                indexed = 0
                for key in keys:
                    for token_id in self.indices.tokens_for(index, key):
                        token = self.tokens.get(token_id)
                        if token is None or getattr(token, field) != key:
                            raise InvariantViolationError(
                                f"{index.value} index '{key}' holds stray token '{token_id}'",
                                token_id=token_id,
                                index=index.value,
                                key=key,
                            )
                        indexed += 1
                expected = typed if index is IndexName.TYPE else total
                if indexed != expected:
                    raise InvariantViolationError(
                        f"{index.value} index holds {indexed} ids, expected {expected}",
                        index=index.value,
                    )

            for token_type in types:
                cap = self.supply.cap_for(token_type) or 0
                count = self.indices.supply_for_type(token_type)
                if count > cap:
                    raise InvariantViolationError(
                        f"Type '{token_type}' holds {count} tokens, cap is {cap}",
                        token_type=token_type,
                    )

        return {
            "tokens": total,
            "owners": len(owners),
            "creators": len(creators),
            "types": len(types),
        }
