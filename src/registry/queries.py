"""Registry query handler - dict-in, dict-out read access.

Used by the CLI and by anything that talks to the registry over a loose
transport. Every query returns {"success": True, "data": ...} or the
standard error response (success, error, code, category, retriable,
details).
"""

from __future__ import annotations

from typing import Any, TYPE_CHECKING

from .errors import ErrorCode, RegistryError, validation_error

if TYPE_CHECKING:
    from .registry import TokenRegistry


# Valid query types and their required/optional parameters
QUERY_SCHEMA: dict[str, dict[str, Any]] = {
    "token": {
        "params": ["token_id"],
        "required": ["token_id"],
    },
    "tokens": {
        "params": ["from_index", "limit"],
        "required": [],
    },
    "tokens_from_end": {
        "params": ["from_index", "limit"],
        "required": ["from_index", "limit"],
    },
    "tokens_batch": {
        "params": ["token_ids"],
        "required": ["token_ids"],
    },
    "tokens_for_owner": {
        "params": ["account_id", "from_index", "limit"],
        "required": ["account_id"],
    },
    "tokens_for_creator": {
        "params": ["account_id", "from_index", "limit"],
        "required": ["account_id"],
    },
    "tokens_for_type": {
        "params": ["token_type", "from_index", "limit"],
        "required": ["token_type"],
    },
    "total_supply": {
        "params": [],
        "required": [],
    },
    "supply_for_owner": {
        "params": ["account_id"],
        "required": ["account_id"],
    },
    "supply_for_creator": {
        "params": ["account_id"],
        "required": ["account_id"],
    },
    "supply_for_type": {
        "params": ["token_type"],
        "required": ["token_type"],
    },
    "token_locked": {
        "params": ["token_id"],
        "required": ["token_id"],
    },
    "supply_caps": {
        "params": [],
        "required": [],
    },
    "types_locked": {
        "params": [],
        "required": [],
    },
    "contract_royalty": {
        "params": [],
        "required": [],
    },
    "free_mint": {
        "params": ["account_id"],
        "required": ["account_id"],
    },
    "metadata": {
        "params": [],
        "required": [],
    },
    "version": {
        "params": [],
        "required": [],
    },
    "storage_cost": {
        "params": [],
        "required": [],
    },
}

_INT_PARAMS = ("from_index", "limit")


class RegistryQueryHandler:
    """Handles read-only registry queries."""

    def __init__(self, registry: "TokenRegistry") -> None:
        self._registry = registry

    def execute(self, query_type: str, params: dict[str, Any]) -> dict[str, Any]:
        """Execute a registry query.

        Args:
            query_type: Type of query (tokens, supply_for_owner, etc.)
            params: Query parameters

        Returns:
            Query result dict with success, data, and optional error info
        """
        if query_type not in QUERY_SCHEMA:
            valid_types = ", ".join(sorted(QUERY_SCHEMA.keys()))
            return validation_error(
                f"Unknown query_type '{query_type}'. Valid types: {valid_types}",
                query_type=query_type,
            )

        schema = QUERY_SCHEMA[query_type]

        for param in params:
            if param not in schema["params"]:
                valid_params = ", ".join(schema["params"]) or "(none)"
                return validation_error(
                    f"Unknown param '{param}' for {query_type} query. Valid params: {valid_params}",
                    param=param,
                )

        for required in schema["required"]:
            if required not in params:
                return validation_error(
                    f"Query '{query_type}' requires '{required}' param",
                    code=ErrorCode.MISSING_ARGUMENT,
                    param=required,
                )

        for name in _INT_PARAMS:
            value = params.get(name)
            if value is not None and (isinstance(value, bool) or not isinstance(value, int)):
                return validation_error(
                    f"Param '{name}' must be an integer, got '{type(value).__name__}'",
                    param=name,
                )

        token_ids = params.get("token_ids")
        if token_ids is not None and (
            not isinstance(token_ids, list) or not all(isinstance(t, str) for t in token_ids)
        ):
            return validation_error(
                f"Param 'token_ids' must be a list of strings, got '{type(token_ids).__name__}'",
                param="token_ids",
            )

        handler = getattr(self, f"_query_{query_type}")
        try:
            data = handler(params)
        except RegistryError as e:
            return e.to_dict()
        return {"success": True, "data": data}

    # ---- single tokens ----

    def _query_token(self, params: dict[str, Any]) -> dict[str, Any] | None:
        token = self._registry.nft_token(params["token_id"])
        return None if token is None else token.to_dict()

    def _query_token_locked(self, params: dict[str, Any]) -> bool:
        return self._registry.is_token_locked(params["token_id"])

    # ---- pages ----

    def _query_tokens(self, params: dict[str, Any]) -> list[dict[str, Any]]:
        tokens = self._registry.nft_tokens(params.get("from_index", 0), params.get("limit", 0))
        return [t.to_dict() for t in tokens]

    def _query_tokens_from_end(self, params: dict[str, Any]) -> list[dict[str, Any]]:
        tokens = self._registry.nft_tokens_from_end(params["from_index"], params["limit"])
        return [t.to_dict() for t in tokens]

    def _query_tokens_batch(self, params: dict[str, Any]) -> list[dict[str, Any]]:
        return [t.to_dict() for t in self._registry.nft_tokens_batch(params["token_ids"])]

    def _query_tokens_for_owner(self, params: dict[str, Any]) -> list[dict[str, Any]]:
        tokens = self._registry.nft_tokens_for_owner(
            params["account_id"], params.get("from_index", 0), params.get("limit", 0)
        )
        return [t.to_dict() for t in tokens]

    def _query_tokens_for_creator(self, params: dict[str, Any]) -> list[dict[str, Any]]:
        tokens = self._registry.nft_tokens_for_creator(
            params["account_id"], params.get("from_index", 0), params.get("limit", 0)
        )
        return [t.to_dict() for t in tokens]

    def _query_tokens_for_type(self, params: dict[str, Any]) -> list[dict[str, Any]]:
        tokens = self._registry.nft_tokens_for_type(
            params["token_type"], params.get("from_index", 0), params.get("limit", 0)
        )
        return [t.to_dict() for t in tokens]

    # ---- counts ----

    def _query_total_supply(self, params: dict[str, Any]) -> int:
        return self._registry.nft_total_supply()

    def _query_supply_for_owner(self, params: dict[str, Any]) -> int:
        return self._registry.nft_supply_for_owner(params["account_id"])

    def _query_supply_for_creator(self, params: dict[str, Any]) -> int:
        return self._registry.nft_supply_for_creator(params["account_id"])

    def _query_supply_for_type(self, params: dict[str, Any]) -> int:
        return self._registry.nft_supply_for_type(params["token_type"])

    # ---- registry settings ----

    def _query_supply_caps(self, params: dict[str, Any]) -> dict[str, int]:
        return self._registry.get_supply_caps()

    def _query_types_locked(self, params: dict[str, Any]) -> list[str]:
        return self._registry.get_token_types_locked()

    def _query_contract_royalty(self, params: dict[str, Any]) -> int:
        return self._registry.get_contract_royalty()

    def _query_free_mint(self, params: dict[str, Any]) -> dict[str, Any]:
        account_id = params["account_id"]
        return {
            "available": self._registry.is_free_mint_available(account_id),
            "tokens_created": self._registry.get_tokens_created(account_id),
            "free_mints": self._registry.get_free_mints(),
        }

    def _query_metadata(self, params: dict[str, Any]) -> dict[str, Any]:
        return self._registry.nft_metadata()

    def _query_version(self, params: dict[str, Any]) -> int:
        return self._registry.get_version()

    def _query_storage_cost(self, params: dict[str, Any]) -> int:
        return self._registry.extra_storage_in_bytes_per_token
