from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date
from decimal import ROUND_HALF_UP, Decimal
from typing import Iterable, List, Optional, Tuple

from networth.aggregation import Aggregate, aggregate
from networth.currency_conversion import StaticRateTable
from networth.entities import Account, BalanceObservation, Category, GroupBy
from networth.snapshot import iter_monthly_snapshots, month_key, reconstruct

logger = logging.getLogger(__name__)

SUPPORTED_TIMEFRAMES = {"12m", "all", "year"}
TRAILING_MONTHS = 12


@dataclass(frozen=True)
class MonthAggregate:
    month: str
    aggregate: Aggregate

    @property
    def year(self) -> str:
        return self.month[:4]

    @property
    def total_assets(self) -> Decimal:
        return self.aggregate.total_assets

    @property
    def total_liabilities(self) -> Decimal:
        return self.aggregate.total_liabilities

    @property
    def net_worth(self) -> Decimal:
        return self.aggregate.net_worth


@dataclass(frozen=True)
class NetWorthSeries:
    months: Tuple[MonthAggregate, ...]
    available_years: Tuple[str, ...]


@dataclass(frozen=True)
class TrendPoint:
    month: str
    assets: Decimal
    liabilities: Decimal
    net_worth: Decimal


def build_series(
    observations: Iterable[BalanceObservation],
    accounts: Iterable[Account],
    categories: Iterable[Category],
    default_currency: str,
    group_by: str = GroupBy.CATEGORY,
    rate_table: Optional[StaticRateTable] = None,
) -> NetWorthSeries:
    """Aggregate every month that has at least one observation, oldest first.

    Months without any observation are not filled in. Each month carries the
    latest known balance of every account observed up to and including it.
    """
    account_list = list(accounts)
    category_list = list(categories)
    months: List[MonthAggregate] = []
    for month, snapshot in iter_monthly_snapshots(observations):
        months.append(
            MonthAggregate(
                month=month,
                aggregate=aggregate(
                    snapshot,
                    account_list,
                    category_list,
                    default_currency,
                    group_by=group_by,
                    rate_table=rate_table,
                ),
            )
        )
    available_years = tuple(sorted({entry.year for entry in months}))
    logger.debug(
        "Built net worth series: %d months, %d years, currency=%s",
        len(months),
        len(available_years),
        default_currency,
    )
    return NetWorthSeries(months=tuple(months), available_years=available_years)


def current_position(
    observations: Iterable[BalanceObservation],
    accounts: Iterable[Account],
    categories: Iterable[Category],
    default_currency: str,
    group_by: str = GroupBy.CATEGORY,
    rate_table: Optional[StaticRateTable] = None,
) -> Aggregate:
    return aggregate(
        reconstruct(observations),
        accounts,
        categories,
        default_currency,
        group_by=group_by,
        rate_table=rate_table,
    )


def trend_line(series: NetWorthSeries) -> List[TrendPoint]:
    return [
        TrendPoint(
            month=entry.month,
            assets=_round_whole(entry.total_assets),
            liabilities=_round_whole(entry.total_liabilities),
            net_worth=_round_whole(entry.net_worth),
        )
        for entry in series.months
    ]


def filter_series(
    series: NetWorthSeries,
    timeframe: str,
    year: Optional[str] = None,
    today: Optional[date] = None,
) -> NetWorthSeries:
    normalized = normalize_timeframe(timeframe)
    if normalized == "all":
        selected = series.months
    elif normalized == "year":
        if not year:
            raise ValueError("A year is required for the year timeframe.")
        selected = tuple(entry for entry in series.months if entry.year == year.strip())
    else:
        if today is not None:
            end_month = month_key(today)
        elif series.months:
            end_month = series.months[-1].month
        else:
            return series
        start_month = _shift_month(end_month, -(TRAILING_MONTHS - 1))
        selected = tuple(
            entry for entry in series.months if start_month <= entry.month <= end_month
        )
    return NetWorthSeries(months=selected, available_years=series.available_years)


def normalize_timeframe(value: str) -> str:
    normalized = value.strip().lower()
    if normalized not in SUPPORTED_TIMEFRAMES:
        raise ValueError("Timeframe must be one of 12m, all, year.")
    return normalized


def _shift_month(month: str, months: int) -> str:
    year, month_number = (int(part) for part in month.split("-"))
    total_month = month_number - 1 + months
    return f"{year + total_month // 12:04d}-{total_month % 12 + 1:02d}"


def _round_whole(value: Decimal) -> Decimal:
    return value.quantize(Decimal("1"), rounding=ROUND_HALF_UP)
