"""Per-type supply caps and creation locks.

A type must be declared with a cap before any token of that type can be
created; undeclared types behave as cap 0. Caps only ever go up. The lock
flag gates creation only: tokens that already exist are never revisited
when their type is locked or unlocked.
"""

from __future__ import annotations

import logging
from typing import Callable, Iterable, Mapping

from .constants import PREFIX_STATE, PREFIX_TOKEN_TYPES_LOCKED
from .errors import CapacityExceededError, InvalidArgumentError, LockedTypeError
from .persistent import LookupMap, UnorderedSet
from .storage import KeyValueStorage

logger = logging.getLogger(__name__)

_SUPPLY_CAPS_KEY = "supply_cap_by_type"


def _check_type_label(token_type: object) -> str:
    if not isinstance(token_type, str) or not token_type:
        raise InvalidArgumentError(
            f"Token type must be a non-empty string, got {token_type!r}",
            token_type=repr(token_type),
        )
    return token_type


def _check_cap(token_type: str, cap: object) -> int:
    if isinstance(cap, bool) or not isinstance(cap, int) or cap < 0:
        raise InvalidArgumentError(
            f"Supply cap for '{token_type}' must be a non-negative integer, got {cap!r}",
            token_type=token_type,
        )
    return cap


class SupplyGovernor:
    """Holds the supply cap table and the locked-type set.

    Args:
        storage: Backend for the cap table and locked set.
        count_for: Returns how many tokens of a type currently exist.
    """

    def __init__(self, storage: KeyValueStorage, count_for: Callable[[str], int]) -> None:
        self._state = LookupMap(storage, PREFIX_STATE)
        self._locked = UnorderedSet(storage, PREFIX_TOKEN_TYPES_LOCKED)
        self._count_for = count_for

    def supply_caps(self) -> dict[str, int]:
        return dict(self._state.get(_SUPPLY_CAPS_KEY) or {})

    def cap_for(self, token_type: str) -> int | None:
        """Declared cap, or None if the type was never declared."""
        return self.supply_caps().get(token_type)

    def is_declared(self, token_type: str) -> bool:
        return token_type in self.supply_caps()

    def is_locked(self, token_type: str) -> bool:
        return self._locked.contains(token_type)

    def locked_types(self) -> list[str]:
        return self._locked.to_list()

    def can_create(self, token_type: str) -> bool:
        """True iff the type is unlocked and below its declared cap."""
        if self.is_locked(token_type):
            return False
        cap = self.cap_for(token_type) or 0
        return self._count_for(token_type) < cap

    def check_can_create(self, token_type: str) -> None:
        """Raise if a token of this type may not be created right now.

        Raises:
            LockedTypeError: The type is locked.
            CapacityExceededError: The type is at its cap or undeclared.
        """
        if self.is_locked(token_type):
            raise LockedTypeError(token_type)
        cap = self.cap_for(token_type) or 0
        if self._count_for(token_type) >= cap:
            raise CapacityExceededError(token_type, cap)

    def declare_or_extend(self, token_type: str, cap: int, lock_by_default: bool) -> bool:
        """Declare a type or raise its cap.

        Returns:
            True if the type was newly declared.

        Raises:
            InvalidArgumentError: Bad label or cap, or cap lower than current.
        """
        return bool(self.declare_many({token_type: cap}, unlocked=None if lock_by_default else True))

    def declare_many(
        self,
        supply_cap_by_type: Mapping[str, int],
        unlocked: bool | None = None,
    ) -> list[str]:
        """Batch form of declare_or_extend.

        Every entry is validated before anything is written. When `unlocked`
        is None every type in the batch is (re)locked; an explicit true or
        false leaves lock state as it is.

        Returns:
            Labels that were newly declared, in batch order.
        """
        caps = self.supply_caps()
        for token_type, cap in supply_cap_by_type.items():
            _check_type_label(token_type)
            _check_cap(token_type, cap)
            current = caps.get(token_type)
            if current is not None and cap < current:
                raise InvalidArgumentError(
                    f"Supply cap for '{token_type}' cannot be lowered from {current} to {cap}",
                    token_type=token_type,
                    current=current,
                    requested=cap,
                )

        declared: list[str] = []
        for token_type, cap in supply_cap_by_type.items():
            if token_type not in caps:
                declared.append(token_type)
            caps[token_type] = cap
            if unlocked is None:
                self._locked.insert(token_type)
        self._state.insert(_SUPPLY_CAPS_KEY, caps)

        logger.info(
            "Declared %d token types (%d new, locked=%s)",
            len(supply_cap_by_type), len(declared), unlocked is None,
        )
        return declared

    def lock(self, token_types: Iterable[str]) -> list[str]:
        """Lock types for creation. Returns the types whose state changed."""
        labels = [_check_type_label(t) for t in token_types]
        return [t for t in labels if self._locked.insert(t)]

    def unlock(self, token_types: Iterable[str]) -> list[str]:
        """Unlock types for creation. Returns the types whose state changed."""
        labels = [_check_type_label(t) for t in token_types]
        return [t for t in labels if self._locked.remove(t)]
