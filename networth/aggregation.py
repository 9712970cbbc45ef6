from __future__ import annotations

import warnings
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Dict, Iterable, List, Mapping, Optional, Tuple

from networth.currency_conversion import StaticRateTable, convert_amount, normalize_currency
from networth.entities import (
    UNKNOWN_LABEL,
    Account,
    BalanceObservation,
    Category,
    GroupBy,
    GroupKey,
)

ZERO = Decimal("0")
NOISE_THRESHOLD = Decimal("0.01")


class DanglingReferenceWarning(UserWarning):
    """An entity points at an id that is not in the supplied collections."""


@dataclass(frozen=True)
class BreakdownEntry:
    key: GroupKey
    label: str
    is_liability: bool
    magnitude: Decimal

    @property
    def signed_value(self) -> Decimal:
        return -self.magnitude if self.is_liability else self.magnitude


@dataclass(frozen=True)
class Aggregate:
    total_assets: Decimal
    total_liabilities: Decimal
    net_worth: Decimal
    breakdown: Tuple[BreakdownEntry, ...] = ()
    account_ids: Tuple[str, ...] = field(default=())


def aggregate(
    latest: Mapping[str, BalanceObservation],
    accounts: Iterable[Account],
    categories: Iterable[Category],
    default_currency: str,
    group_by: str = GroupBy.CATEGORY,
    rate_table: Optional[StaticRateTable] = None,
) -> Aggregate:
    """Value one snapshot in ``default_currency``.

    Liabilities are stored as positive amounts; their category type alone
    makes them subtract from net worth. Buckets smaller than one cent are
    left out of the breakdown but still count toward the totals.
    """
    target_currency = normalize_currency(default_currency)
    normalized_group_by = GroupBy.validate(group_by)
    accounts_by_id = _index(accounts)
    categories_by_id = _index(categories)

    total_assets = ZERO
    total_liabilities = ZERO
    buckets: Dict[GroupKey, Decimal] = {}
    labels: Dict[GroupKey, str] = {}
    liability_keys: set[GroupKey] = set()

    for account_id, observation in latest.items():
        account = accounts_by_id.get(account_id)
        category = None
        if account is None:
            _warn_dangling("account", account_id, f"observation {observation.id}")
            currency = target_currency
        else:
            currency = account.currency
            category = categories_by_id.get(account.category_id)
            if category is None:
                _warn_dangling("category", account.category_id, f"account {account.id}")

        value = convert_amount(observation.amount, currency, target_currency, rate_table=rate_table)
        is_liability = category is not None and category.is_liability
        if is_liability:
            total_liabilities += value
        else:
            total_assets += value

        key, label = _resolve_group(normalized_group_by, account_id, account, category)
        buckets[key] = buckets.get(key, ZERO) + value
        labels[key] = label
        if is_liability:
            liability_keys.add(key)

    breakdown = [
        BreakdownEntry(
            key=key,
            label=labels[key],
            is_liability=key in liability_keys,
            magnitude=magnitude,
        )
        for key, magnitude in buckets.items()
        if abs(magnitude) >= NOISE_THRESHOLD
    ]
    breakdown.sort(key=lambda entry: (-entry.magnitude, entry.label, entry.key.id))

    return Aggregate(
        total_assets=total_assets,
        total_liabilities=total_liabilities,
        net_worth=total_assets - total_liabilities,
        breakdown=tuple(breakdown),
        account_ids=tuple(sorted(latest)),
    )


def asset_allocation(result: Aggregate) -> List[BreakdownEntry]:
    return [entry for entry in result.breakdown if not entry.is_liability]


def liability_allocation(result: Aggregate) -> List[BreakdownEntry]:
    return [entry for entry in result.breakdown if entry.is_liability]


def _resolve_group(
    group_by: str,
    account_id: str,
    account: Optional[Account],
    category: Optional[Category],
) -> Tuple[GroupKey, str]:
    if group_by == GroupBy.ACCOUNT:
        label = account.name if account is not None else UNKNOWN_LABEL
        return GroupKey(GroupBy.ACCOUNT, account_id), label
    if category is not None:
        return GroupKey(GroupBy.CATEGORY, category.id), category.name
    category_id = account.category_id if account is not None else ""
    return GroupKey(GroupBy.CATEGORY, category_id), UNKNOWN_LABEL


def _index(items) -> dict:
    return {item.id: item for item in items}


def _warn_dangling(kind: str, missing_id: str, referrer: str) -> None:
    warnings.warn(
        f"{referrer} references unknown {kind} {missing_id!r}",
        DanglingReferenceWarning,
        stacklevel=3,
    )
