from __future__ import annotations

import random
from dataclasses import dataclass
from datetime import date, datetime, timezone
from decimal import ROUND_HALF_UP, Decimal
from typing import Callable, Dict, List, Optional

from networth.entities import (
    LIABILITY_CATEGORY_NAME,
    Account,
    BalanceObservation,
    EntitySet,
    Owner,
    default_categories,
)

DEMO_MONTHS = 12
DEMO_DAY = 15


@dataclass(frozen=True)
class DemoAccountSpec:
    name: str
    owner: str
    currency: str
    category: str
    base_amount: Decimal
    monthly_change: Decimal
    volatility: Decimal


DEMO_ACCOUNTS = (
    DemoAccountSpec("Chase Checking", "John", "USD", "Cash/Savings", Decimal("8000"), Decimal("400"), Decimal("0.05")),
    DemoAccountSpec("Vanguard ETF", "John", "USD", "Stock Investment", Decimal("25000"), Decimal("500"), Decimal("0.08")),
    DemoAccountSpec("Bitcoin Wallet", "Mary", "CAD", "Cryptocurrency", Decimal("5000"), Decimal("0"), Decimal("0.25")),
    DemoAccountSpec("Tokyo Condo", "Joint", "JPY", "Real Estate", Decimal("48000000"), Decimal("0"), Decimal("0.005")),
    DemoAccountSpec("Car Loan", "Joint", "USD", LIABILITY_CATEGORY_NAME, Decimal("18000"), Decimal("-350"), Decimal("0")),
    DemoAccountSpec("Visa Credit Card", "John", "USD", LIABILITY_CATEGORY_NAME, Decimal("2000"), Decimal("0"), Decimal("0.4")),
    DemoAccountSpec("Emergency Fund", "Joint", "EUR", "Cash/Savings", Decimal("10000"), Decimal("100"), Decimal("0.01")),
)


def generate_demo_data(
    new_id: Callable[[], str],
    today: date,
    rng: Optional[random.Random] = None,
    months: int = DEMO_MONTHS,
) -> EntitySet:
    """Build a household with ``months`` monthly observations per account.

    Each balance follows a linear trend with a random factor drawn from
    ``rng`` within the account's volatility, clamped at zero.
    """
    source = rng or random.Random()
    categories = default_categories(new_id)
    categories_by_name = {category.name: category for category in categories}

    owners: Dict[str, Owner] = {}
    accounts: List[Account] = []
    for spec in DEMO_ACCOUNTS:
        if spec.owner not in owners:
            owners[spec.owner] = Owner(id=new_id(), name=spec.owner)
        accounts.append(
            Account(
                id=new_id(),
                name=spec.name,
                currency=spec.currency,
                category_id=categories_by_name[spec.category].id,
                owner_id=owners[spec.owner].id,
            )
        )

    records: List[BalanceObservation] = []
    for months_ago in range(months - 1, -1, -1):
        observed_on = _months_before(today, months_ago)
        timestamp = int(
            datetime(observed_on.year, observed_on.month, observed_on.day, tzinfo=timezone.utc).timestamp()
            * 1000
        )
        months_passed = months - 1 - months_ago
        for spec, account in zip(DEMO_ACCOUNTS, accounts):
            amount = spec.base_amount + spec.monthly_change * months_passed
            if spec.volatility > 0:
                factor = Decimal(str(source.uniform(-1, 1))) * spec.volatility
                amount = amount * (1 + factor)
            if amount < 0:
                amount = Decimal("0")
            records.append(
                BalanceObservation(
                    id=new_id(),
                    date=observed_on,
                    account_id=account.id,
                    amount=amount.quantize(Decimal("1"), rounding=ROUND_HALF_UP),
                    timestamp=timestamp,
                    note="Latest automated update" if months_ago == 0 else None,
                )
            )

    return EntitySet(
        owners=tuple(owners.values()),
        categories=tuple(categories),
        accounts=tuple(accounts),
        records=tuple(records),
    )


def _months_before(value: date, months: int) -> date:
    total_month = value.month - 1 - months
    year = value.year + total_month // 12
    month = total_month % 12 + 1
    return date(year, month, DEMO_DAY)
