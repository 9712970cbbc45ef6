from __future__ import annotations

from datetime import date
from typing import Dict, Iterable, Iterator, List, Optional, Tuple, Union

from networth.entities import BalanceObservation

Snapshot = Dict[str, BalanceObservation]
MonthRef = Union[str, date, None]


def month_key(value: date) -> str:
    return f"{value.year:04d}-{value.month:02d}"


def normalize_month(value: MonthRef) -> Optional[str]:
    if value is None:
        return None
    if isinstance(value, date):
        return month_key(value)
    raw = value.strip()
    try:
        year_part, month_part = raw.split("-")
        year = int(year_part)
        month = int(month_part)
    except ValueError as exc:
        raise ValueError("Month must be in YYYY-MM format.") from exc
    if len(year_part) != 4 or not 1 <= month <= 12:
        raise ValueError("Month must be in YYYY-MM format.")
    return f"{year:04d}-{month:02d}"


def sort_observations(
    observations: Iterable[BalanceObservation],
) -> List[BalanceObservation]:
    """Order observations so that later entries always win.

    Date first, then creation timestamp; the id only separates exact
    duplicates so the result does not depend on input order.
    """
    return sorted(observations, key=_sort_key)


def reconstruct(
    observations: Iterable[BalanceObservation],
    as_of: MonthRef = None,
) -> Snapshot:
    """Latest observation per account for everything dated in or before ``as_of``.

    Accounts without an observation up to that month are absent from the
    result rather than mapped to zero. ``None`` means the whole history.
    """
    cutoff = normalize_month(as_of)
    latest: Snapshot = {}
    for observation in sort_observations(observations):
        if cutoff is not None and month_key(observation.date) > cutoff:
            break
        latest[observation.account_id] = observation
    return latest


def iter_monthly_snapshots(
    observations: Iterable[BalanceObservation],
) -> Iterator[Tuple[str, Snapshot]]:
    """Yield ``(month, snapshot)`` for every month that has an observation.

    One sort followed by one forward pass; a snapshot is taken each time the
    walk crosses into a new month. Each yielded snapshot is its own copy.
    """
    latest: Snapshot = {}
    current_month: Optional[str] = None
    for observation in sort_observations(observations):
        observation_month = month_key(observation.date)
        if current_month is not None and observation_month != current_month:
            yield current_month, dict(latest)
        current_month = observation_month
        latest[observation.account_id] = observation
    if current_month is not None:
        yield current_month, dict(latest)


def distinct_months(observations: Iterable[BalanceObservation]) -> List[str]:
    return sorted({month_key(observation.date) for observation in observations})


def _sort_key(observation: BalanceObservation) -> tuple:
    return (observation.date, observation.timestamp, str(observation.id))
