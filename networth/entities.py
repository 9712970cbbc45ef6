from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import Callable, List, Optional, Tuple

UNKNOWN_LABEL = "Unknown"
AMOUNT_QUANTUM = Decimal("0.01")


def validate_amount(value: Decimal) -> Decimal:
    """Balances are stored with cent precision; anything finer is refused."""
    if not value.is_finite():
        raise ValueError("Amount must be a finite number.")
    if value < 0:
        raise ValueError("Amount must not be negative.")
    if value != value.quantize(AMOUNT_QUANTUM):
        raise ValueError("Amount must have at most 2 decimal places.")
    return value


class CategoryType:
    ASSET = "ASSET"
    LIABILITY = "LIABILITY"
    values = {ASSET, LIABILITY}

    @classmethod
    def validate(cls, value: str) -> str:
        normalized = value.strip().upper()
        if normalized not in cls.values:
            raise ValueError("Invalid category type.")
        return normalized


class GroupBy:
    CATEGORY = "category"
    ACCOUNT = "account"
    values = {CATEGORY, ACCOUNT}

    @classmethod
    def validate(cls, value: str) -> str:
        normalized = value.strip().lower()
        if normalized not in cls.values:
            raise ValueError("group_by must be 'category' or 'account'.")
        return normalized


@dataclass(frozen=True)
class Owner:
    id: str
    name: str


@dataclass(frozen=True)
class Category:
    id: str
    name: str
    type: str = CategoryType.ASSET
    color: str = "#64748b"

    @property
    def is_liability(self) -> bool:
        return self.type == CategoryType.LIABILITY


@dataclass(frozen=True)
class Account:
    id: str
    name: str
    currency: str
    category_id: str
    owner_id: str


@dataclass(frozen=True)
class BalanceObservation:
    """The balance of an account as of a calendar day.

    ``amount`` is an absolute, non-negative balance in the account's
    currency. ``timestamp`` is the creation instant in epoch milliseconds and
    decides between observations sharing a date.
    """

    id: str
    date: date
    account_id: str
    amount: Decimal
    timestamp: int = 0
    note: Optional[str] = None


@dataclass(frozen=True, order=True)
class GroupKey:
    kind: str
    id: str


@dataclass(frozen=True)
class EntitySet:
    owners: Tuple[Owner, ...] = ()
    categories: Tuple[Category, ...] = ()
    accounts: Tuple[Account, ...] = ()
    records: Tuple[BalanceObservation, ...] = ()


LIABILITY_CATEGORY_NAME = "Liability (Loan/Debt)"

DEFAULT_CATEGORIES: Tuple[Tuple[str, str, str], ...] = (
    ("Stock Investment", CategoryType.ASSET, "#3b82f6"),
    ("Cryptocurrency", CategoryType.ASSET, "#8b5cf6"),
    ("Cash/Savings", CategoryType.ASSET, "#10b981"),
    ("Real Estate", CategoryType.ASSET, "#f59e0b"),
    ("Insurance", CategoryType.ASSET, "#06b6d4"),
    (LIABILITY_CATEGORY_NAME, CategoryType.LIABILITY, "#ef4444"),
    ("Other", CategoryType.ASSET, "#64748b"),
)


def default_categories(new_id: Callable[[], str]) -> List[Category]:
    return [
        Category(id=new_id(), name=name, type=category_type, color=color)
        for name, category_type, color in DEFAULT_CATEGORIES
    ]
