import json
import logging
import os
import time
from contextlib import asynccontextmanager
from datetime import date, datetime
from decimal import Decimal
from typing import Any, Callable
from uuid import uuid4

from fastapi import Body, Depends, FastAPI, File, HTTPException, Query, UploadFile
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import Response
from pydantic import BaseModel
from sqlalchemy import (
    BigInteger,
    Column,
    Date,
    ForeignKey,
    MetaData,
    Numeric,
    String,
    Table,
    create_engine,
    delete,
    insert,
    select,
    update,
)
from sqlalchemy.exc import IntegrityError

from networth.aggregation import (
    Aggregate,
    BreakdownEntry,
    asset_allocation,
    liability_allocation,
)
from networth.backup import BackupFormatError, export_backup, parse_backup
from networth.csv_export import export_records_csv
from networth.currency_conversion import (
    DEFAULT_RATE_TABLE,
    SUPPORTED_CURRENCIES,
    UnsupportedCurrency,
    normalize_currency,
)
from networth.demo_data import generate_demo_data
from networth.entities import (
    Account,
    BalanceObservation,
    Category,
    CategoryType,
    EntitySet,
    GroupBy,
    Owner,
    default_categories,
    validate_amount,
)
from networth.time_series import (
    build_series,
    current_position,
    filter_series,
    normalize_timeframe,
    trend_line,
)

logger = logging.getLogger(__name__)

frontend_origin = os.getenv("FRONTEND_ORIGIN", "http://localhost:3000")
database_url = os.getenv("DATABASE_URL", "sqlite:///./networth.db")
connect_args = {}
if database_url.startswith("sqlite"):
    connect_args = {"check_same_thread": False}

engine = create_engine(database_url, connect_args=connect_args)
metadata = MetaData()


def get_system_default_currency() -> str:
    raw = os.getenv("DEFAULT_CURRENCY", "USD")
    try:
        normalized = normalize_currency(raw)
    except UnsupportedCurrency:
        return "USD"
    return normalized if DEFAULT_RATE_TABLE.supports(normalized) else "USD"


SYSTEM_DEFAULT_CURRENCY = get_system_default_currency()
DEFAULT_CURRENCY_KEY = "default_currency"

owners = Table(
    "owners",
    metadata,
    Column("id", String(64), primary_key=True),
    Column("name", String(255), nullable=False),
)

categories = Table(
    "categories",
    metadata,
    Column("id", String(64), primary_key=True),
    Column("name", String(255), nullable=False),
    Column("type", String(20), nullable=False),
    Column("color", String(20), nullable=False),
)

accounts = Table(
    "accounts",
    metadata,
    Column("id", String(64), primary_key=True),
    Column("name", String(255), nullable=False),
    Column("currency", String(3), nullable=False),
    Column("category_id", String(64), ForeignKey("categories.id"), nullable=False),
    Column("owner_id", String(64), ForeignKey("owners.id"), nullable=False),
)

records = Table(
    "records",
    metadata,
    Column("id", String(64), primary_key=True),
    Column("date", Date, nullable=False),
    Column("account_id", String(64), ForeignKey("accounts.id"), nullable=False),
    Column("amount", Numeric(18, 2), nullable=False),
    Column("note", String(500)),
    Column("timestamp", BigInteger, nullable=False),
)

settings = Table(
    "settings",
    metadata,
    Column("key", String(64), primary_key=True),
    Column("value", String(255), nullable=False),
)


@asynccontextmanager
async def lifespan(_: FastAPI):
    logging.captureWarnings(True)
    metadata.create_all(engine)
    yield


app = FastAPI(lifespan=lifespan)
app.add_middleware(
    CORSMiddleware,
    allow_origins=[frontend_origin],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


def new_entity_id() -> str:
    return uuid4().hex


def current_timestamp_ms() -> int:
    return int(time.time() * 1000)


def get_id_factory() -> Callable[[], str]:
    return new_entity_id


def get_clock() -> Callable[[], int]:
    return current_timestamp_ms


def _clean_name(value: str, label: str) -> str:
    cleaned = value.strip()
    if not cleaned:
        raise ValueError(f"{label} name required.")
    return cleaned


def _supported_currency(value: str) -> str:
    normalized = normalize_currency(value)
    if not DEFAULT_RATE_TABLE.supports(normalized):
        raise ValueError(f"Unsupported currency: {normalized}")
    return normalized


class SettingsPayload(BaseModel):
    default_currency: str

    @classmethod
    def validate_payload(cls, payload: "SettingsPayload") -> "SettingsPayload":
        payload.default_currency = _supported_currency(payload.default_currency)
        return payload


class SettingsResponse(BaseModel):
    default_currency: str
    supported_currencies: list[str]


class OwnerPayload(BaseModel):
    name: str

    @classmethod
    def validate_payload(cls, payload: "OwnerPayload") -> "OwnerPayload":
        payload.name = _clean_name(payload.name, "Owner")
        return payload


class OwnerResponse(OwnerPayload):
    id: str


class CategoryPayload(BaseModel):
    name: str
    type: str = CategoryType.ASSET
    color: str = "#64748b"

    @classmethod
    def validate_payload(cls, payload: "CategoryPayload") -> "CategoryPayload":
        payload.name = _clean_name(payload.name, "Category")
        payload.type = CategoryType.validate(payload.type)
        payload.color = payload.color.strip() or "#64748b"
        return payload


class CategoryResponse(CategoryPayload):
    id: str


class AccountPayload(BaseModel):
    name: str
    currency: str
    category_id: str
    owner_id: str

    @classmethod
    def validate_payload(cls, payload: "AccountPayload") -> "AccountPayload":
        payload.name = _clean_name(payload.name, "Account")
        payload.currency = _supported_currency(payload.currency)
        return payload


class AccountResponse(AccountPayload):
    id: str


class RecordPayload(BaseModel):
    date: date
    account_id: str
    amount: Decimal
    note: str | None = None
    timestamp: int | None = None

    @classmethod
    def validate_payload(cls, payload: "RecordPayload") -> "RecordPayload":
        payload.amount = validate_amount(payload.amount)
        payload.note = payload.note.strip() if payload.note else None
        return payload


class RecordResponse(BaseModel):
    id: str
    date: date
    account_id: str
    amount: Decimal
    note: str | None = None
    timestamp: int


class BreakdownItem(BaseModel):
    kind: str
    id: str
    label: str
    is_liability: bool
    signed_value: Decimal
    magnitude: Decimal


class MonthAggregateResponse(BaseModel):
    month: str
    total_assets: Decimal
    total_liabilities: Decimal
    net_worth: Decimal
    breakdown: list[BreakdownItem]
    account_ids: list[str]


class TrendPointResponse(BaseModel):
    month: str
    assets: Decimal
    liabilities: Decimal
    net_worth: Decimal


class NetWorthSeriesResponse(BaseModel):
    default_currency: str
    group_by: str
    timeframe: str
    months: list[MonthAggregateResponse]
    trend: list[TrendPointResponse]
    available_years: list[str]


class SummaryResponse(BaseModel):
    default_currency: str
    group_by: str
    total_assets: Decimal
    total_liabilities: Decimal
    net_worth: Decimal
    asset_allocation: list[BreakdownItem]
    liability_allocation: list[BreakdownItem]


class ImportResponse(BaseModel):
    owners: int
    categories: int
    accounts: int
    records: int


def resolve_default_currency(conn) -> str:
    stored = conn.execute(
        select(settings.c.value).where(settings.c.key == DEFAULT_CURRENCY_KEY)
    ).scalar_one_or_none()
    if stored:
        try:
            return _supported_currency(stored)
        except ValueError:
            pass
    return SYSTEM_DEFAULT_CURRENCY


def ensure_default_categories(conn, new_id: Callable[[], str]) -> None:
    existing = conn.execute(select(categories.c.id).limit(1)).first()
    if existing:
        return
    conn.execute(
        insert(categories),
        [
            {"id": category.id, "name": category.name, "type": category.type, "color": category.color}
            for category in default_categories(new_id)
        ],
    )


def row_exists(conn, table: Table, entity_id: str) -> bool:
    return conn.execute(select(table.c.id).where(table.c.id == entity_id)).first() is not None


def reference_in_use(conn, table: Table, column_name: str, entity_id: str) -> bool:
    return (
        conn.execute(
            select(table.c.id).where(table.c[column_name] == entity_id).limit(1)
        ).first()
        is not None
    )


def load_entities(conn) -> EntitySet:
    return EntitySet(
        owners=tuple(
            Owner(id=row["id"], name=row["name"])
            for row in conn.execute(select(owners).order_by(owners.c.name, owners.c.id)).mappings()
        ),
        categories=tuple(
            Category(id=row["id"], name=row["name"], type=row["type"], color=row["color"])
            for row in conn.execute(
                select(categories).order_by(categories.c.name, categories.c.id)
            ).mappings()
        ),
        accounts=tuple(
            Account(
                id=row["id"],
                name=row["name"],
                currency=row["currency"],
                category_id=row["category_id"],
                owner_id=row["owner_id"],
            )
            for row in conn.execute(select(accounts).order_by(accounts.c.name, accounts.c.id)).mappings()
        ),
        records=tuple(
            _record_from_row(row)
            for row in conn.execute(
                select(records).order_by(records.c.date, records.c.timestamp, records.c.id)
            ).mappings()
        ),
    )


def replace_entities(conn, entities: EntitySet) -> None:
    clear_entities(conn)
    if entities.owners:
        conn.execute(
            insert(owners), [{"id": owner.id, "name": owner.name} for owner in entities.owners]
        )
    if entities.categories:
        conn.execute(
            insert(categories),
            [
                {"id": item.id, "name": item.name, "type": item.type, "color": item.color}
                for item in entities.categories
            ],
        )
    if entities.accounts:
        conn.execute(
            insert(accounts),
            [
                {
                    "id": item.id,
                    "name": item.name,
                    "currency": item.currency,
                    "category_id": item.category_id,
                    "owner_id": item.owner_id,
                }
                for item in entities.accounts
            ],
        )
    if entities.records:
        conn.execute(
            insert(records),
            [
                {
                    "id": item.id,
                    "date": item.date,
                    "account_id": item.account_id,
                    "amount": item.amount,
                    "note": item.note,
                    "timestamp": item.timestamp,
                }
                for item in entities.records
            ],
        )


def clear_entities(conn) -> None:
    for table in (records, accounts, categories, owners):
        conn.execute(delete(table))


def _record_from_row(row) -> BalanceObservation:
    amount = row["amount"]
    return BalanceObservation(
        id=row["id"],
        date=row["date"],
        account_id=row["account_id"],
        amount=amount if isinstance(amount, Decimal) else Decimal(str(amount)),
        timestamp=row["timestamp"],
        note=row["note"],
    )


def _record_response(record: BalanceObservation) -> RecordResponse:
    return RecordResponse(
        id=record.id,
        date=record.date,
        account_id=record.account_id,
        amount=record.amount,
        note=record.note,
        timestamp=record.timestamp,
    )


def _breakdown_items(entries) -> list[BreakdownItem]:
    return [_breakdown_item(entry) for entry in entries]


def _breakdown_item(entry: BreakdownEntry) -> BreakdownItem:
    return BreakdownItem(
        kind=entry.key.kind,
        id=entry.key.id,
        label=entry.label,
        is_liability=entry.is_liability,
        signed_value=entry.signed_value,
        magnitude=entry.magnitude,
    )


def _validate_group_by(value: str) -> str:
    try:
        return GroupBy.validate(value)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc


def _store_import(entities: EntitySet) -> ImportResponse:
    for account in entities.accounts:
        if not DEFAULT_RATE_TABLE.supports(account.currency):
            raise HTTPException(
                status_code=400, detail=f"Unsupported currency: {account.currency}"
            )
    try:
        with engine.begin() as conn:
            replace_entities(conn, entities)
    except IntegrityError as exc:
        raise HTTPException(status_code=400, detail="Backup has conflicting ids.") from exc
    logger.info(
        "Imported %d records, %d accounts, %d categories, %d owners",
        len(entities.records),
        len(entities.accounts),
        len(entities.categories),
        len(entities.owners),
    )
    return ImportResponse(
        owners=len(entities.owners),
        categories=len(entities.categories),
        accounts=len(entities.accounts),
        records=len(entities.records),
    )


@app.get("/health")
def health() -> dict:
    return {"status": "ok"}


@app.get("/settings", response_model=SettingsResponse)
def get_settings() -> SettingsResponse:
    with engine.begin() as conn:
        default_currency = resolve_default_currency(conn)
    return SettingsResponse(
        default_currency=default_currency,
        supported_currencies=list(SUPPORTED_CURRENCIES),
    )


@app.put("/settings", response_model=SettingsResponse)
def update_settings(payload: SettingsPayload) -> SettingsResponse:
    try:
        payload = SettingsPayload.validate_payload(payload)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc

    with engine.begin() as conn:
        updated = conn.execute(
            update(settings)
            .where(settings.c.key == DEFAULT_CURRENCY_KEY)
            .values(value=payload.default_currency)
        )
        if updated.rowcount == 0:
            conn.execute(
                insert(settings).values(key=DEFAULT_CURRENCY_KEY, value=payload.default_currency)
            )
    return SettingsResponse(
        default_currency=payload.default_currency,
        supported_currencies=list(SUPPORTED_CURRENCIES),
    )


@app.get("/owners", response_model=list[OwnerResponse])
def list_owners() -> list[OwnerResponse]:
    with engine.begin() as conn:
        rows = conn.execute(select(owners).order_by(owners.c.name, owners.c.id)).mappings().all()
    return [OwnerResponse(id=row["id"], name=row["name"]) for row in rows]


@app.post("/owners", response_model=OwnerResponse)
def create_owner(
    payload: OwnerPayload, new_id: Callable[[], str] = Depends(get_id_factory)
) -> OwnerResponse:
    try:
        payload = OwnerPayload.validate_payload(payload)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc

    owner_id = new_id()
    with engine.begin() as conn:
        conn.execute(insert(owners).values(id=owner_id, name=payload.name))
    return OwnerResponse(id=owner_id, name=payload.name)


@app.put("/owners/{owner_id}", response_model=OwnerResponse)
def update_owner(owner_id: str, payload: OwnerPayload) -> OwnerResponse:
    try:
        payload = OwnerPayload.validate_payload(payload)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc

    with engine.begin() as conn:
        result = conn.execute(
            update(owners).where(owners.c.id == owner_id).values(name=payload.name)
        )
    if result.rowcount == 0:
        raise HTTPException(status_code=404, detail="Owner not found.")
    return OwnerResponse(id=owner_id, name=payload.name)


@app.delete("/owners/{owner_id}")
def delete_owner(owner_id: str) -> dict:
    with engine.begin() as conn:
        if not row_exists(conn, owners, owner_id):
            raise HTTPException(status_code=404, detail="Owner not found.")
        if reference_in_use(conn, accounts, "owner_id", owner_id):
            logger.info("Rejected delete of owner %s: referenced by an account", owner_id)
            raise HTTPException(status_code=409, detail="Owner is in use.")
        conn.execute(delete(owners).where(owners.c.id == owner_id))
    return {"status": "deleted"}


@app.get("/categories", response_model=list[CategoryResponse])
def list_categories(new_id: Callable[[], str] = Depends(get_id_factory)) -> list[CategoryResponse]:
    with engine.begin() as conn:
        ensure_default_categories(conn, new_id)
        rows = conn.execute(
            select(categories).order_by(categories.c.name, categories.c.id)
        ).mappings().all()
    return [
        CategoryResponse(id=row["id"], name=row["name"], type=row["type"], color=row["color"])
        for row in rows
    ]


@app.post("/categories", response_model=CategoryResponse)
def create_category(
    payload: CategoryPayload, new_id: Callable[[], str] = Depends(get_id_factory)
) -> CategoryResponse:
    try:
        payload = CategoryPayload.validate_payload(payload)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc

    category_id = new_id()
    with engine.begin() as conn:
        conn.execute(
            insert(categories).values(
                id=category_id, name=payload.name, type=payload.type, color=payload.color
            )
        )
    return CategoryResponse(id=category_id, **payload.model_dump())


@app.put("/categories/{category_id}", response_model=CategoryResponse)
def update_category(category_id: str, payload: CategoryPayload) -> CategoryResponse:
    try:
        payload = CategoryPayload.validate_payload(payload)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc

    with engine.begin() as conn:
        result = conn.execute(
            update(categories)
            .where(categories.c.id == category_id)
            .values(name=payload.name, type=payload.type, color=payload.color)
        )
    if result.rowcount == 0:
        raise HTTPException(status_code=404, detail="Category not found.")
    return CategoryResponse(id=category_id, **payload.model_dump())


@app.delete("/categories/{category_id}")
def delete_category(category_id: str) -> dict:
    with engine.begin() as conn:
        if not row_exists(conn, categories, category_id):
            raise HTTPException(status_code=404, detail="Category not found.")
        if reference_in_use(conn, accounts, "category_id", category_id):
            logger.info("Rejected delete of category %s: referenced by an account", category_id)
            raise HTTPException(status_code=409, detail="Category is in use.")
        conn.execute(delete(categories).where(categories.c.id == category_id))
    return {"status": "deleted"}


def _check_account_references(conn, payload: AccountPayload) -> None:
    if not row_exists(conn, categories, payload.category_id):
        raise HTTPException(status_code=400, detail="Category not found.")
    if not row_exists(conn, owners, payload.owner_id):
        raise HTTPException(status_code=400, detail="Owner not found.")


@app.get("/accounts", response_model=list[AccountResponse])
def list_accounts() -> list[AccountResponse]:
    with engine.begin() as conn:
        rows = conn.execute(
            select(accounts).order_by(accounts.c.name, accounts.c.id)
        ).mappings().all()
    return [AccountResponse(**row) for row in rows]


@app.post("/accounts", response_model=AccountResponse)
def create_account(
    payload: AccountPayload, new_id: Callable[[], str] = Depends(get_id_factory)
) -> AccountResponse:
    try:
        payload = AccountPayload.validate_payload(payload)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc

    account_id = new_id()
    with engine.begin() as conn:
        _check_account_references(conn, payload)
        conn.execute(insert(accounts).values(id=account_id, **payload.model_dump()))
    return AccountResponse(id=account_id, **payload.model_dump())


@app.put("/accounts/{account_id}", response_model=AccountResponse)
def update_account(account_id: str, payload: AccountPayload) -> AccountResponse:
    try:
        payload = AccountPayload.validate_payload(payload)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc

    with engine.begin() as conn:
        if not row_exists(conn, accounts, account_id):
            raise HTTPException(status_code=404, detail="Account not found.")
        _check_account_references(conn, payload)
        conn.execute(
            update(accounts).where(accounts.c.id == account_id).values(**payload.model_dump())
        )
    return AccountResponse(id=account_id, **payload.model_dump())


@app.delete("/accounts/{account_id}")
def delete_account(account_id: str) -> dict:
    with engine.begin() as conn:
        if not row_exists(conn, accounts, account_id):
            raise HTTPException(status_code=404, detail="Account not found.")
        if reference_in_use(conn, records, "account_id", account_id):
            logger.info("Rejected delete of account %s: has balance records", account_id)
            raise HTTPException(status_code=409, detail="Account is in use.")
        conn.execute(delete(accounts).where(accounts.c.id == account_id))
    return {"status": "deleted"}


@app.get("/records", response_model=list[RecordResponse])
def list_records(
    account_id: str | None = Query(None),
    category_id: str | None = Query(None),
    owner_id: str | None = Query(None),
) -> list[RecordResponse]:
    stmt = select(records).select_from(
        records.outerjoin(accounts, records.c.account_id == accounts.c.id)
    )
    if account_id:
        stmt = stmt.where(records.c.account_id == account_id)
    if category_id:
        stmt = stmt.where(accounts.c.category_id == category_id)
    if owner_id:
        stmt = stmt.where(accounts.c.owner_id == owner_id)
    stmt = stmt.order_by(records.c.date.desc(), records.c.timestamp.desc(), records.c.id.desc())
    with engine.begin() as conn:
        rows = conn.execute(stmt).mappings().all()
    return [_record_response(_record_from_row(row)) for row in rows]


@app.post("/records", response_model=RecordResponse)
def create_record(
    payload: RecordPayload,
    new_id: Callable[[], str] = Depends(get_id_factory),
    clock: Callable[[], int] = Depends(get_clock),
) -> RecordResponse:
    try:
        payload = RecordPayload.validate_payload(payload)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc

    record = BalanceObservation(
        id=new_id(),
        date=payload.date,
        account_id=payload.account_id,
        amount=payload.amount,
        timestamp=payload.timestamp if payload.timestamp is not None else clock(),
        note=payload.note,
    )
    with engine.begin() as conn:
        if not row_exists(conn, accounts, payload.account_id):
            raise HTTPException(status_code=400, detail="Account not found.")
        conn.execute(
            insert(records).values(
                id=record.id,
                date=record.date,
                account_id=record.account_id,
                amount=record.amount,
                note=record.note,
                timestamp=record.timestamp,
            )
        )
    return _record_response(record)


@app.put("/records/{record_id}", response_model=RecordResponse)
def update_record(record_id: str, payload: RecordPayload) -> RecordResponse:
    try:
        payload = RecordPayload.validate_payload(payload)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc

    with engine.begin() as conn:
        existing = conn.execute(
            select(records.c.timestamp).where(records.c.id == record_id)
        ).scalar_one_or_none()
        if existing is None:
            raise HTTPException(status_code=404, detail="Record not found.")
        if not row_exists(conn, accounts, payload.account_id):
            raise HTTPException(status_code=400, detail="Account not found.")
        timestamp = payload.timestamp if payload.timestamp is not None else existing
        conn.execute(
            update(records)
            .where(records.c.id == record_id)
            .values(
                date=payload.date,
                account_id=payload.account_id,
                amount=payload.amount,
                note=payload.note,
                timestamp=timestamp,
            )
        )
    return RecordResponse(
        id=record_id,
        date=payload.date,
        account_id=payload.account_id,
        amount=payload.amount,
        note=payload.note,
        timestamp=timestamp,
    )


@app.delete("/records/{record_id}")
def delete_record(record_id: str) -> dict:
    with engine.begin() as conn:
        result = conn.execute(delete(records).where(records.c.id == record_id))
    if result.rowcount == 0:
        raise HTTPException(status_code=404, detail="Record not found.")
    return {"status": "deleted"}


@app.get("/reports/net-worth", response_model=NetWorthSeriesResponse)
def net_worth_series(
    group_by: str = Query(GroupBy.CATEGORY),
    timeframe: str = Query("12m"),
    year: str | None = Query(None),
) -> NetWorthSeriesResponse:
    normalized_group_by = _validate_group_by(group_by)
    try:
        normalized_timeframe = normalize_timeframe(timeframe)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    if normalized_timeframe == "year" and not year:
        raise HTTPException(status_code=400, detail="A year is required for the year timeframe.")

    with engine.begin() as conn:
        default_currency = resolve_default_currency(conn)
        entities = load_entities(conn)

    series = build_series(
        entities.records,
        entities.accounts,
        entities.categories,
        default_currency,
        group_by=normalized_group_by,
    )
    series = filter_series(series, normalized_timeframe, year=year)

    return NetWorthSeriesResponse(
        default_currency=default_currency,
        group_by=normalized_group_by,
        timeframe=normalized_timeframe,
        months=[
            MonthAggregateResponse(
                month=entry.month,
                total_assets=entry.total_assets,
                total_liabilities=entry.total_liabilities,
                net_worth=entry.net_worth,
                breakdown=_breakdown_items(entry.aggregate.breakdown),
                account_ids=list(entry.aggregate.account_ids),
            )
            for entry in series.months
        ],
        trend=[
            TrendPointResponse(
                month=point.month,
                assets=point.assets,
                liabilities=point.liabilities,
                net_worth=point.net_worth,
            )
            for point in trend_line(series)
        ],
        available_years=list(series.available_years),
    )


@app.get("/reports/summary", response_model=SummaryResponse)
def net_worth_summary(group_by: str = Query(GroupBy.CATEGORY)) -> SummaryResponse:
    normalized_group_by = _validate_group_by(group_by)
    with engine.begin() as conn:
        default_currency = resolve_default_currency(conn)
        entities = load_entities(conn)

    position: Aggregate = current_position(
        entities.records,
        entities.accounts,
        entities.categories,
        default_currency,
        group_by=normalized_group_by,
    )
    # Debts are always listed per account, whatever the asset grouping.
    if normalized_group_by == GroupBy.ACCOUNT:
        by_account = position
    else:
        by_account = current_position(
            entities.records,
            entities.accounts,
            entities.categories,
            default_currency,
            group_by=GroupBy.ACCOUNT,
        )

    return SummaryResponse(
        default_currency=default_currency,
        group_by=normalized_group_by,
        total_assets=position.total_assets,
        total_liabilities=position.total_liabilities,
        net_worth=position.net_worth,
        asset_allocation=_breakdown_items(asset_allocation(position)),
        liability_allocation=_breakdown_items(liability_allocation(by_account)),
    )


@app.get("/export/csv")
def export_csv() -> Response:
    with engine.begin() as conn:
        entities = load_entities(conn)
    filename = f"family_asset_tracker_{date.today().isoformat()}.csv"
    return Response(
        content=export_records_csv(entities),
        media_type="text/csv; charset=utf-8",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


@app.get("/export/backup")
def export_json_backup() -> dict:
    with engine.begin() as conn:
        entities = load_entities(conn)
    return export_backup(entities, now=datetime.now().astimezone())


@app.post("/import", response_model=ImportResponse)
def import_backup(
    payload: Any = Body(...), new_id: Callable[[], str] = Depends(get_id_factory)
) -> ImportResponse:
    try:
        entities = parse_backup(payload, new_id)
    except BackupFormatError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    return _store_import(entities)


@app.post("/import/file", response_model=ImportResponse)
async def import_backup_file(
    file: UploadFile = File(...), new_id: Callable[[], str] = Depends(get_id_factory)
) -> ImportResponse:
    content = await file.read()
    try:
        payload = json.loads(content.decode("utf-8-sig"))
    except (UnicodeDecodeError, json.JSONDecodeError) as exc:
        raise HTTPException(status_code=400, detail="Backup file is not valid JSON.") from exc
    try:
        entities = parse_backup(payload, new_id)
    except BackupFormatError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    return _store_import(entities)


@app.delete("/data")
def delete_all_data() -> dict:
    with engine.begin() as conn:
        clear_entities(conn)
    logger.warning("All household data deleted")
    return {"status": "deleted"}


@app.post("/demo", response_model=ImportResponse)
def load_demo_data(new_id: Callable[[], str] = Depends(get_id_factory)) -> ImportResponse:
    entities = generate_demo_data(new_id, today=date.today())
    return _store_import(entities)
