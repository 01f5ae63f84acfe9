"""Registry records and the composite views returned by queries.

Token is the authoritative record held in the by-id store. TokenMetadata is
a thin descriptive carrier stored alongside it; its schema is not validated
beyond field names. JsonToken joins the two for callers.
"""

from __future__ import annotations

import re
from dataclasses import asdict, dataclass, field, fields
from typing import Any

from .constants import MAX_ACCOUNT_ID_LEN, MIN_ACCOUNT_ID_LEN

# Lowercase alphanumeric parts separated by '-' or '_', joined with '.'
ACCOUNT_ID_PATTERN = re.compile(r"^(([a-z\d]+[\-_])*[a-z\d]+\.)*([a-z\d]+[\-_])*[a-z\d]+$")


def is_valid_account_id(account_id: object) -> bool:
    """Check an account identifier's length and character rules."""
    if not isinstance(account_id, str):
        return False
    if not MIN_ACCOUNT_ID_LEN <= len(account_id) <= MAX_ACCOUNT_ID_LEN:
        return False
    return ACCOUNT_ID_PATTERN.match(account_id) is not None


@dataclass
class Token:
    """Authoritative record for one token.

    creator_id and token_type never change after creation; owner_id changes
    on transfer; royalty may only grow through the administrative backfill.
    """

    owner_id: str
    creator_id: str
    token_type: str | None = None
    royalty: dict[str, int] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "owner_id": self.owner_id,
            "creator_id": self.creator_id,
            "token_type": self.token_type,
            "royalty": dict(self.royalty),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Token:
        """Create from a dictionary produced by to_dict()."""
        return cls(
            owner_id=data["owner_id"],
            creator_id=data["creator_id"],
            token_type=data.get("token_type"),
            royalty={k: int(v) for k, v in data.get("royalty", {}).items()},
        )


@dataclass
class TokenMetadata:
    """Descriptive metadata for a token. Every field is optional."""

    title: str | None = None
    description: str | None = None
    media: str | None = None
    media_hash: str | None = None
    copies: int | None = None
    issued_at: str | None = None
    expires_at: str | None = None
    starts_at: str | None = None
    updated_at: str | None = None
    extra: str | None = None
    reference: str | None = None
    reference_hash: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> TokenMetadata:
        """Build from a dict, ignoring keys this carrier does not know."""
        if not data:
            return cls()
        known = {f.name for f in fields(cls)}
        return cls(**{k: v for k, v in data.items() if k in known})


@dataclass
class JsonToken:
    """Hydrated view of a token: record plus metadata."""

    token_id: str
    owner_id: str
    creator_id: str
    token_type: str | None
    royalty: dict[str, int]
    metadata: TokenMetadata

    @classmethod
    def from_parts(cls, token_id: str, token: Token, metadata: TokenMetadata) -> JsonToken:
        return cls(
            token_id=token_id,
            owner_id=token.owner_id,
            creator_id=token.creator_id,
            token_type=token.token_type,
            royalty=dict(token.royalty),
            metadata=metadata,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "token_id": self.token_id,
            "owner_id": self.owner_id,
            "creator_id": self.creator_id,
            "token_type": self.token_type,
            "royalty": dict(self.royalty),
            "metadata": self.metadata.to_dict(),
        }
