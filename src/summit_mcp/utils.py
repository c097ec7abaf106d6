"""Utility functions for Summit MCP server."""

import logging
from collections.abc import Hashable, Iterable, Mapping
from datetime import datetime
from typing import Any

from .models import (
    DEFAULT_CATEGORY,
    DEFAULT_DESCRIPTION,
    ClassifiedTransaction,
    Direction,
    RawTransfer,
    parse_timestamp,
)


logger = logging.getLogger(__name__)

__all__ = [
    "OwnershipResolver",
    "build_directory",
    "classify_transaction",
    "classify_transfers",
    "format_currency",
    "format_date",
    "is_pure_expense",
    "is_pure_income",
    "is_transfer",
    "parse_timestamp",
]


def build_directory(accounts: Iterable[dict[str, Any]]) -> dict[Hashable, str]:
    """Map account IDs to display numbers, "#{id}" when accountNumber is missing."""
    return {
        account["id"]: account.get("accountNumber") or f"#{account['id']}"
        for account in accounts
    }


class OwnershipResolver:
    """Answers which accounts belong to the viewer and how to display them."""

    def __init__(
        self,
        owned: Iterable[Hashable],
        directory: Mapping[Hashable, str] | None = None,
    ):
        """Initialize resolver.

        Args:
            owned: Account IDs belonging to the viewer.
            directory: Account ID to display number mapping.
        """
        self._owned = frozenset(owned)
        self._directory = dict(directory or {})

    @classmethod
    def from_accounts(cls, accounts: Iterable[dict[str, Any]]) -> "OwnershipResolver":
        """Build resolver from the viewer's account list.

        Every listed account is owned. Accounts without accountNumber are
        displayed as "#{id}".

        Args:
            accounts: Account records with id and optional accountNumber.

        Returns:
            Resolver for this fetch cycle.
        """
        directory = build_directory(accounts)
        return cls(directory, directory)

    @property
    def owned(self) -> frozenset:
        return self._owned

    def is_owned(self, account_id: Hashable) -> bool:
        return account_id in self._owned

    def display_number(self, account_id: Hashable) -> str:
        """Display number for an account, "Account {id}" when unknown."""
        number = self._directory.get(account_id)
        if number is None:
            return f"Account {account_id}"
        return number


def classify_transaction(
    transfer: RawTransfer,
    resolver: OwnershipResolver,
) -> ClassifiedTransaction:
    """Classify transfer relative to the viewer.

    Direction depends only on which legs are owned:
        both owned -> TRANSFER, shown on the source account
        only destination owned -> CREDIT, shown on the destination account
        otherwise -> DEBIT, shown on the source account

    Args:
        transfer: Raw transfer from the ledger.
        resolver: Ownership and display numbers for this fetch cycle.

    Returns:
        Classified transaction.
    """
    from_owned = resolver.is_owned(transfer.from_account_id)
    to_owned = resolver.is_owned(transfer.to_account_id)
    from_number = resolver.display_number(transfer.from_account_id)
    to_number = resolver.display_number(transfer.to_account_id)

    if from_owned and to_owned:
        direction = Direction.TRANSFER
        account_number = from_number
        merchant_label = f"Transfer: {from_number} → {to_number}"
    elif to_owned:
        direction = Direction.CREDIT
        account_number = to_number
        merchant_label = f"From {from_number}"
    else:
        if not from_owned:
            # Ledger returned a transfer that touches none of the viewer's accounts
            logger.debug("Transfer %s has no owned leg, treating as debit", transfer.id)
        direction = Direction.DEBIT
        account_number = from_number
        merchant_label = f"To {to_number}"

    return ClassifiedTransaction(
        id=transfer.id,
        description=transfer.description or DEFAULT_DESCRIPTION,
        amount=abs(transfer.amount),
        date=transfer.timestamp,
        direction=direction,
        category=DEFAULT_CATEGORY,
        merchant_label=merchant_label,
        display_account_number=account_number,
        from_account_id=transfer.from_account_id,
        to_account_id=transfer.to_account_id,
    )


def classify_transfers(
    transfers: Iterable[RawTransfer],
    owned: Iterable[Hashable] | OwnershipResolver,
    directory: Mapping[Hashable, str] | None = None,
) -> list[ClassifiedTransaction]:
    """Classify a full snapshot of transfers, keeping their order.

    Args:
        transfers: Raw transfers.
        owned: Viewer's account IDs, or a ready resolver.
        directory: Account ID to display number mapping. Ignored when
            owned is a resolver.

    Returns:
        Classified transactions in input order.
    """
    if isinstance(owned, OwnershipResolver):
        resolver = owned
    else:
        resolver = OwnershipResolver(owned, directory)
    return [classify_transaction(transfer, resolver) for transfer in transfers]


def is_transfer(tx: ClassifiedTransaction) -> bool:
    """Check if transaction moves money between the viewer's own accounts.

    Transfers are excluded from both income and expense views.
    """
    return tx.direction is Direction.TRANSFER


def is_pure_income(tx: ClassifiedTransaction) -> bool:
    """Check if transaction is incoming money (CREDIT)."""
    return tx.direction is Direction.CREDIT


def is_pure_expense(tx: ClassifiedTransaction) -> bool:
    """Check if transaction is outgoing money (DEBIT)."""
    return tx.direction is Direction.DEBIT


def format_currency(amount: float, symbol: str = "$") -> str:
    """Format amount as en-US currency, e.g. 3500 -> "$3,500.00"."""
    sign = "-" if amount < 0 else ""
    return f"{sign}{symbol}{abs(amount):,.2f}"


def format_date(value: datetime) -> str:
    """Format date as en-US short date, e.g. "Nov 28, 2025"."""
    return f"{value.strftime('%b')} {value.day}, {value.year}"
