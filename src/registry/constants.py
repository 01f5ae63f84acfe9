"""Centralized constants for the registry module.

Royalty ceilings, identifier limits and storage namespace prefixes live
here to avoid literals scattered across modules.
"""

# Royalties are expressed in basis points (1/100 of a percent)
MAX_BASIS_POINTS = 10_000

# Registry-wide royalty the operator may take on every token (10%)
CONTRACT_ROYALTY_CAP = 1000

# Royalty a minter may assign across one token's table (90%)
MINTER_ROYALTY_CAP = 9000

# Account identifier length bounds
MIN_ACCOUNT_ID_LEN = 2
MAX_ACCOUNT_ID_LEN = 64

# Character used to build the synthetic storage-probe account
PROBE_ACCOUNT_CHAR = "a"

# Current persisted state layout version
STATE_VERSION = 1

# Top-level storage namespaces. Nested per-key sets append a sha256 digest
# of their parent key to the inner prefix.
PREFIX_TOKENS_PER_OWNER = b"o"
PREFIX_TOKENS_PER_OWNER_INNER = b"O"
PREFIX_TOKENS_PER_CREATOR = b"c"
PREFIX_TOKENS_PER_CREATOR_INNER = b"C"
PREFIX_TOKENS_BY_ID = b"t"
PREFIX_TOKEN_METADATA_BY_ID = b"m"
PREFIX_TOKENS_PER_TYPE = b"y"
PREFIX_TOKENS_PER_TYPE_INNER = b"Y"
PREFIX_TOKEN_TYPES_LOCKED = b"l"
PREFIX_STATE = b"s"
