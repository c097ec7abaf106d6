"""Filtering and reporting logic for Summit MCP tools."""

from collections.abc import Callable, Iterable
from datetime import datetime, timedelta, timezone
from typing import Any

from .models import ClassifiedTransaction, DateWindow, Direction, FilterCriteria, TypeFilter, as_utc
from .utils import (
    OwnershipResolver,
    format_currency,
    format_date,
    is_pure_expense,
    is_pure_income,
)


EMPTY_FILTERED_MESSAGE = "Try adjusting your filters"
EMPTY_HISTORY_MESSAGE = "Make a transfer to see your transaction history"

# TRANSFER passes neither income nor expense, so it is only visible under ALL
TYPE_FILTER_PREDICATES: dict[TypeFilter, Callable[[ClassifiedTransaction], bool]] = {
    TypeFilter.ALL: lambda tx: True,
    TypeFilter.INCOME: is_pure_income,
    TypeFilter.EXPENSE: is_pure_expense,
}

DIRECTION_TONES: dict[Direction, str] = {
    Direction.CREDIT: "positive",
    Direction.DEBIT: "negative",
    Direction.TRANSFER: "negative",
}


def _utc_now(now: datetime | None = None) -> datetime:
    if now is None:
        return datetime.now(timezone.utc)
    return as_utc(now)


def get_cutoff(window: DateWindow, now: datetime | None = None) -> datetime | None:
    """Convert date window to the earliest date it keeps.

    Args:
        window: Look-back window.
        now: Reference time. Defaults to current UTC time.

    Returns:
        now minus the window's days, or None for all time.
    """
    days = window.days
    if days is None:
        return None
    return _utc_now(now) - timedelta(days=days)


def matches_search(tx: ClassifiedTransaction, search_term: str) -> bool:
    """Check if description, merchant label or category contains the term."""
    if not search_term:
        return True
    needle = search_term.lower()
    return (
        needle in tx.description.lower()
        or needle in tx.merchant_label.lower()
        or needle in tx.category.lower()
    )


def matches_type(tx: ClassifiedTransaction, type_filter: TypeFilter) -> bool:
    return TYPE_FILTER_PREDICATES[type_filter](tx)


def within_window(tx: ClassifiedTransaction, cutoff: datetime | None) -> bool:
    """Check if transaction is on or after cutoff. Future dates always pass."""
    if cutoff is None:
        return True
    return as_utc(tx.date) >= cutoff


def filter_transactions(
    transactions: Iterable[ClassifiedTransaction],
    criteria: FilterCriteria,
    now: datetime | None = None,
) -> list[ClassifiedTransaction]:
    """Narrow transactions by search text, type and date window.

    Stages run in a fixed order: search, type, date. The result is a new
    list holding the surviving transactions in their original order, so
    applying the same criteria to it again changes nothing.

    Args:
        transactions: Classified transactions.
        criteria: Filter snapshot.
        now: Reference time for the date window. Defaults to current UTC time.

    Returns:
        Filtered transactions.
    """
    filtered = list(transactions)

    if criteria.search_term:
        filtered = [tx for tx in filtered if matches_search(tx, criteria.search_term)]

    if criteria.type_filter is not TypeFilter.ALL:
        filtered = [tx for tx in filtered if matches_type(tx, criteria.type_filter)]

    cutoff = get_cutoff(criteria.date_window, now)
    if cutoff is not None:
        filtered = [tx for tx in filtered if within_window(tx, cutoff)]

    return filtered


def project_transaction(tx: ClassifiedTransaction) -> dict[str, Any]:
    """Convert classified transaction to display-ready fields."""
    amount = format_currency(abs(tx.amount))
    if tx.direction is Direction.CREDIT:
        amount = f"+{amount}"

    return {
        "id": tx.id,
        "description": tx.description,
        "merchant": tx.merchant_label,
        "category": tx.category,
        "account_number": tx.display_account_number,
        "direction": tx.direction.value,
        "amount": tx.amount,
        "formatted_amount": amount,
        "date": tx.date.isoformat(),
        "formatted_date": format_date(tx.date),
        "tone": DIRECTION_TONES[tx.direction],
    }


def search_transactions(
    transactions: Iterable[ClassifiedTransaction],
    criteria: FilterCriteria,
    limit: int = 50,
    now: datetime | None = None,
) -> dict[str, Any]:
    """Search transactions with filters.

    "Show my income this week", "Find the Amazon purchase"

    Args:
        transactions: Classified transactions of the current snapshot.
        criteria: Filter snapshot.
        limit: Maximum results to return.
        now: Reference time for the date window.

    Returns:
        Dictionary with matching transactions.
    """
    filtered = filter_transactions(transactions, criteria, now=now)
    shown = filtered[:limit] if limit >= 0 else filtered

    result: dict[str, Any] = {
        "criteria": criteria.to_dict(),
        "total_count": len(filtered),
        "returned_count": len(shown),
        "transactions": [project_transaction(tx) for tx in shown],
    }

    if not filtered:
        result["empty_message"] = (
            EMPTY_HISTORY_MESSAGE if criteria.is_default() else EMPTY_FILTERED_MESSAGE
        )

    return result


def summarize_directions(
    transactions: Iterable[ClassifiedTransaction],
    criteria: FilterCriteria,
    now: datetime | None = None,
) -> dict[str, Any]:
    """Summarize filtered transactions by direction.

    "How much came in this month?", "How many transfers did I make?"

    Totals are sums of the listed magnitudes, not account balances.

    Args:
        transactions: Classified transactions of the current snapshot.
        criteria: Filter snapshot.
        now: Reference time for the date window.

    Returns:
        Dictionary with per-direction counts and totals.
    """
    filtered = filter_transactions(transactions, criteria, now=now)

    by_direction: dict[str, dict[str, Any]] = {
        direction.value: {"count": 0, "total": 0.0} for direction in Direction
    }
    for tx in filtered:
        bucket = by_direction[tx.direction.value]
        bucket["count"] += 1
        bucket["total"] += abs(tx.amount)

    for bucket in by_direction.values():
        bucket["total"] = round(bucket["total"], 2)

    total_in = by_direction[Direction.CREDIT.value]["total"]
    total_out = by_direction[Direction.DEBIT.value]["total"]

    return {
        "criteria": criteria.to_dict(),
        "transaction_count": len(filtered),
        "by_direction": by_direction,
        "total_in": total_in,
        "total_out": total_out,
        "formatted_total_in": format_currency(total_in),
        "formatted_total_out": format_currency(total_out),
    }


def get_accounts_resource(resolver: OwnershipResolver | None) -> dict[str, Any]:
    """Get the viewer's accounts and display numbers."""
    if resolver is None:
        return {"accounts": [], "count": 0}

    accounts = [
        {
            "id": account_id,
            "account_number": resolver.display_number(account_id),
        }
        for account_id in sorted(resolver.owned, key=str)
    ]
    return {"accounts": accounts, "count": len(accounts)}
