"""Royalty ceilings.

Two ceilings are tracked independently:
- operator: one registry-wide rate applied to every token, at most 10%
- minter: the per-token table chosen by the creating account, at most 90%

Both are expressed in basis points.
"""

from __future__ import annotations

from typing import Mapping

from .constants import CONTRACT_ROYALTY_CAP, MINTER_ROYALTY_CAP
from .errors import InvalidAccountIdError, InvalidArgumentError, RoyaltyCapExceededError
from .models import is_valid_account_id


class RoyaltyCapValidator:
    """Checks royalty contributions against the operator and minter caps."""

    def __init__(
        self,
        operator_cap: int = CONTRACT_ROYALTY_CAP,
        minter_cap: int = MINTER_ROYALTY_CAP,
        max_entries: int = 10,
    ) -> None:
        self.operator_cap = operator_cap
        self.minter_cap = minter_cap
        self.max_entries = max_entries

    def validate(
        self,
        royalty_table: Mapping[str, int],
        is_operator_contribution: bool,
        existing: Mapping[str, int] | None = None,
    ) -> int:
        """Validate a contribution merged over any existing entries.

        An account present in both `existing` and `royalty_table` takes the
        new value. Nothing is written; the caller applies the table only if
        this returns.

        Returns:
            The aggregate basis points after the contribution.

        Raises:
            InvalidArgumentError: Non-integer or negative amount, or too many
                entries in a minter table.
            InvalidAccountIdError: A royalty account id is malformed.
            RoyaltyCapExceededError: The aggregate exceeds its ceiling.
        """
        for account_id, amount in royalty_table.items():
            if not is_valid_account_id(account_id):
                raise InvalidAccountIdError(str(account_id))
            if isinstance(amount, bool) or not isinstance(amount, int) or amount < 0:
                raise InvalidArgumentError(
                    f"Royalty for '{account_id}' must be a non-negative integer, got {amount!r}",
                    account_id=account_id,
                )

        merged = dict(existing or {})
        merged.update(royalty_table)

        if not is_operator_contribution and len(merged) > self.max_entries:
            raise InvalidArgumentError(
                f"Royalty table has {len(merged)} entries, at most {self.max_entries} allowed",
                entries=len(merged),
                max_entries=self.max_entries,
            )

        total = sum(merged.values())
        cap = self.operator_cap if is_operator_contribution else self.minter_cap
        if total > cap:
            raise RoyaltyCapExceededError(total, cap, is_operator_contribution)
        return total

    def validate_operator_rate(self, operator_id: str, basis_points: int) -> int:
        return self.validate({operator_id: basis_points}, is_operator_contribution=True)

    def validate_minter_table(self, royalty_table: Mapping[str, int]) -> int:
        return self.validate(royalty_table, is_operator_contribution=False)
