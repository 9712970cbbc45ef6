from __future__ import annotations

from datetime import date, datetime, timezone
from decimal import Decimal
from typing import Any, Callable, Dict, List, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from networth.currency_conversion import normalize_currency
from networth.entities import (
    DEFAULT_CATEGORIES,
    LIABILITY_CATEGORY_NAME,
    Account,
    BalanceObservation,
    Category,
    CategoryType,
    EntitySet,
    Owner,
    validate_amount,
)

BACKUP_VERSION = "2.0"
FALLBACK_COLOR = "#64748b"


class BackupFormatError(ValueError):
    """Raised when an import payload is neither a backup nor a legacy record list."""


class _BackupModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")


class OwnerRecord(_BackupModel):
    id: str
    name: str


class CategoryRecord(_BackupModel):
    id: str
    name: str
    type: str = CategoryType.ASSET
    color: str = FALLBACK_COLOR

    @field_validator("type")
    @classmethod
    def _validate_type(cls, value: str) -> str:
        return CategoryType.validate(value)


class AccountRecord(_BackupModel):
    id: str
    name: str
    currency: str
    category_id: str = Field(alias="categoryId")
    owner_id: str = Field(alias="ownerId")

    @field_validator("currency")
    @classmethod
    def _validate_currency(cls, value: str) -> str:
        return normalize_currency(value)


class ObservationRecord(_BackupModel):
    id: str
    date: date
    account_id: str = Field(alias="accountId")
    amount: Decimal
    note: Optional[str] = None
    timestamp: int = 0

    @field_validator("amount")
    @classmethod
    def _validate_amount(cls, value: Decimal) -> Decimal:
        return validate_amount(value)


class LegacyRecord(_BackupModel):
    id: str
    date: date
    account_name: str = Field(alias="accountName")
    owner: str
    currency: str
    amount: Decimal
    category: str
    note: Optional[str] = None
    timestamp: int = 0

    @field_validator("currency")
    @classmethod
    def _validate_currency(cls, value: str) -> str:
        return normalize_currency(value)

    @field_validator("amount")
    @classmethod
    def _validate_amount(cls, value: Decimal) -> Decimal:
        return validate_amount(value)


class BackupMetadata(_BackupModel):
    version: str = BACKUP_VERSION
    timestamp: Optional[int] = None
    export_date: Optional[str] = Field(default=None, alias="exportDate")


class FullBackup(_BackupModel):
    metadata: BackupMetadata = Field(default_factory=BackupMetadata)
    records: List[ObservationRecord] = Field(default_factory=list)
    accounts: List[AccountRecord] = Field(default_factory=list)
    categories: List[CategoryRecord] = Field(default_factory=list)
    owners: List[OwnerRecord] = Field(default_factory=list)


def export_backup(entities: EntitySet, now: Optional[datetime] = None) -> Dict[str, Any]:
    moment = now or datetime.now(timezone.utc)
    backup = FullBackup(
        metadata=BackupMetadata(
            version=BACKUP_VERSION,
            timestamp=int(moment.timestamp() * 1000),
            export_date=moment.isoformat(),
        ),
        records=[
            ObservationRecord(
                id=record.id,
                date=record.date,
                account_id=record.account_id,
                amount=record.amount,
                note=record.note,
                timestamp=record.timestamp,
            )
            for record in entities.records
        ],
        accounts=[
            AccountRecord(
                id=account.id,
                name=account.name,
                currency=account.currency,
                category_id=account.category_id,
                owner_id=account.owner_id,
            )
            for account in entities.accounts
        ],
        categories=[
            CategoryRecord(
                id=category.id,
                name=category.name,
                type=category.type,
                color=category.color,
            )
            for category in entities.categories
        ],
        owners=[OwnerRecord(id=owner.id, name=owner.name) for owner in entities.owners],
    )
    return backup.model_dump(mode="json", by_alias=True)


def parse_backup(payload: Any, new_id: Callable[[], str]) -> EntitySet:
    """Normalize an uploaded backup into entities.

    Accepts the versioned backup object or the older flat list of records
    that carried account, owner, category and currency inline. ``new_id`` is
    only used to mint ids for entities the legacy format never had.
    """
    try:
        if isinstance(payload, list):
            legacy = [LegacyRecord.model_validate(item) for item in payload]
            return _from_legacy(legacy, new_id)
        if isinstance(payload, dict) and "records" in payload:
            return _from_backup(FullBackup.model_validate(payload))
    except ValidationError as exc:
        raise BackupFormatError(f"Invalid backup data: {exc.error_count()} error(s).") from exc
    raise BackupFormatError("Backup must be a record list or an object with records.")


def _from_backup(backup: FullBackup) -> EntitySet:
    return EntitySet(
        owners=tuple(Owner(id=item.id, name=item.name) for item in backup.owners),
        categories=tuple(
            Category(id=item.id, name=item.name, type=item.type, color=item.color)
            for item in backup.categories
        ),
        accounts=tuple(
            Account(
                id=item.id,
                name=item.name,
                currency=item.currency,
                category_id=item.category_id,
                owner_id=item.owner_id,
            )
            for item in backup.accounts
        ),
        records=tuple(
            BalanceObservation(
                id=item.id,
                date=item.date,
                account_id=item.account_id,
                amount=item.amount,
                timestamp=item.timestamp,
                note=item.note,
            )
            for item in backup.records
        ),
    )


def _from_legacy(records: List[LegacyRecord], new_id: Callable[[], str]) -> EntitySet:
    owners: Dict[str, Owner] = {}
    categories: Dict[str, Category] = {}
    accounts: Dict[Tuple[str, str], Account] = {}
    observations: List[BalanceObservation] = []
    colors = {name: color for name, _, color in DEFAULT_CATEGORIES}

    for record in records:
        owner_name = record.owner.strip()
        owner = owners.get(owner_name)
        if owner is None:
            owner = Owner(id=new_id(), name=owner_name)
            owners[owner_name] = owner

        category_name = record.category.strip()
        category = categories.get(category_name)
        if category is None:
            category_type = (
                CategoryType.LIABILITY
                if category_name == LIABILITY_CATEGORY_NAME
                else CategoryType.ASSET
            )
            category = Category(
                id=new_id(),
                name=category_name,
                type=category_type,
                color=colors.get(category_name, FALLBACK_COLOR),
            )
            categories[category_name] = category

        account_key = (record.account_name.strip(), owner_name)
        account = accounts.get(account_key)
        if account is None:
            account = Account(
                id=new_id(),
                name=account_key[0],
                currency=record.currency,
                category_id=category.id,
                owner_id=owner.id,
            )
            accounts[account_key] = account

        observations.append(
            BalanceObservation(
                id=record.id,
                date=record.date,
                account_id=account.id,
                amount=record.amount,
                timestamp=record.timestamp,
                note=record.note,
            )
        )

    return EntitySet(
        owners=tuple(owners.values()),
        categories=tuple(categories.values()),
        accounts=tuple(accounts.values()),
        records=tuple(observations),
    )
