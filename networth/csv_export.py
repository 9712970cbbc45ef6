from __future__ import annotations

import csv
import io
import warnings

from networth.aggregation import DanglingReferenceWarning
from networth.entities import EntitySet

CSV_HEADERS = ["Date", "Account Name", "Owner", "Category", "Amount", "Currency", "Note", "ID"]


def export_records_csv(entities: EntitySet) -> str:
    """Render balance records as CSV, one row per record.

    Names that cannot be resolved fall back to the raw id, and each
    fallback is reported as a ``DanglingReferenceWarning``. Owners are
    only checked here since valuation never looks at them.
    """
    accounts = {account.id: account for account in entities.accounts}
    categories = {category.id: category for category in entities.categories}
    owners = {owner.id: owner for owner in entities.owners}

    buffer = io.StringIO()
    writer = csv.writer(buffer, lineterminator="\n")
    writer.writerow(CSV_HEADERS)
    for record in entities.records:
        account = accounts.get(record.account_id)
        if account is None:
            _warn_fallback("account", record.account_id, f"record {record.id}")
            writer.writerow(
                [
                    record.date.isoformat(),
                    record.account_id,
                    "",
                    "",
                    str(record.amount),
                    "",
                    record.note or "",
                    record.id,
                ]
            )
            continue
        owner = owners.get(account.owner_id)
        if owner is None:
            _warn_fallback("owner", account.owner_id, f"account {account.id}")
        category = categories.get(account.category_id)
        if category is None:
            _warn_fallback("category", account.category_id, f"account {account.id}")
        writer.writerow(
            [
                record.date.isoformat(),
                account.name,
                owner.name if owner else account.owner_id,
                category.name if category else account.category_id,
                str(record.amount),
                account.currency,
                record.note or "",
                record.id,
            ]
        )
    return buffer.getvalue()


def _warn_fallback(kind: str, missing_id: str, referrer: str) -> None:
    warnings.warn(
        f"{referrer} references unknown {kind} {missing_id!r}",
        DanglingReferenceWarning,
        stacklevel=3,
    )
