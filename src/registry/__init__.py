"""Token registry package.

Persistent multi-index registry of uniquely identified tokens with
per-owner, per-creator and per-type enumeration, supply caps, creation
locks and royalty ceilings.
"""

from .errors import (
    CapacityExceededError,
    DuplicateTokenError,
    InvalidAccountIdError,
    InvalidArgumentError,
    InvariantViolationError,
    LockedTypeError,
    NotAuthorizedError,
    NotOwnerError,
    RegistryError,
    RoyaltyCapExceededError,
    TokenNotFoundError,
)
from .index_manager import IndexManager, IndexName
from .logger import EventLogger
from .models import JsonToken, Token, TokenMetadata, is_valid_account_id
from .pagination import PaginationEngine
from .queries import RegistryQueryHandler
from .registry import TokenRegistry
from .royalty import RoyaltyCapValidator
from .storage import KeyValueStorage, MemoryStorage, SqliteStorage, build_storage
from .supply import SupplyGovernor

__all__ = [
    "TokenRegistry",
    "RegistryQueryHandler",
    "KeyValueStorage",
    "MemoryStorage",
    "SqliteStorage",
    "build_storage",
    "IndexManager",
    "IndexName",
    "SupplyGovernor",
    "RoyaltyCapValidator",
    "PaginationEngine",
    "EventLogger",
    "Token",
    "TokenMetadata",
    "JsonToken",
    "is_valid_account_id",
    "RegistryError",
    "InvalidArgumentError",
    "InvalidAccountIdError",
    "RoyaltyCapExceededError",
    "NotOwnerError",
    "NotAuthorizedError",
    "TokenNotFoundError",
    "DuplicateTokenError",
    "CapacityExceededError",
    "LockedTypeError",
    "InvariantViolationError",
]
