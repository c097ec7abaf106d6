"""Test fixtures for Summit MCP server tests."""

from datetime import datetime, timedelta, timezone

import pytest

from summit_mcp.models import ClassifiedTransaction, Direction, RawTransfer
from summit_mcp.sync_engine import SyncEngine
from summit_mcp.utils import OwnershipResolver


NOW = datetime(2025, 11, 30, 12, 0, tzinfo=timezone.utc)


def make_tx(
    tx_id: int,
    description: str,
    direction: Direction,
    days_ago: float = 1,
    amount: float = 10.0,
    category: str = "Transfer",
    merchant_label: str = "To ****9999",
) -> ClassifiedTransaction:
    """Build a classified transaction dated relative to NOW."""
    return ClassifiedTransaction(
        id=tx_id,
        description=description,
        amount=amount,
        date=NOW - timedelta(days=days_ago),
        direction=direction,
        category=category,
        merchant_label=merchant_label,
        display_account_number="****4521",
        from_account_id=101,
        to_account_id=202,
    )


@pytest.fixture
def now() -> datetime:
    return NOW


@pytest.fixture
def accounts() -> list[dict]:
    """Viewer's accounts as returned by /api/accounts."""
    return [
        {"id": 101, "accountNumber": "****4521", "type": "CHECKING", "balance": 5000.0},
        {"id": 102, "accountNumber": "****7832", "type": "SAVINGS", "balance": 12000.0},
        {"id": 103, "type": "CHECKING", "balance": 0.0},  # no account number
    ]


@pytest.fixture
def resolver(accounts: list[dict]) -> OwnershipResolver:
    return OwnershipResolver.from_accounts(accounts)


@pytest.fixture
def transfer_records() -> list[dict]:
    """Recent transfers as returned by /api/transactions/recent."""
    return [
        {
            "id": 1,
            "fromAccountId": 101,
            "toAccountId": 500,
            "amount": 89.99,
            "timestamp": "2025-11-28T10:15:30",
            "description": "Amazon Purchase",
        },
        {
            "id": 2,
            "fromAccountId": 600,
            "toAccountId": 101,
            "amount": 3500.00,
            "timestamp": "2025-11-27T09:00:00",
            "description": "Salary Deposit",
        },
        {
            "id": 3,
            "fromAccountId": 102,
            "toAccountId": 101,
            "amount": 500.00,
            "timestamp": "2025-11-25T18:30:00",
            "description": None,
        },
        {
            "id": 4,
            "fromAccountId": 101,
            "toAccountId": 700,
            "amount": 145.30,
            "timestamp": "2025-09-01T08:00:00",
            "description": "Utilities Bill",
        },
    ]


@pytest.fixture
def raw_transfers(transfer_records: list[dict]) -> list[RawTransfer]:
    return [RawTransfer.from_dict(record) for record in transfer_records]


@pytest.fixture
def sample_transactions() -> list[ClassifiedTransaction]:
    """Classified transactions modeled on the dashboard's sample feed."""
    return [
        make_tx(1, "Amazon Purchase", Direction.DEBIT, days_ago=2, amount=89.99,
                merchant_label="To Amazon.com"),
        make_tx(2, "Salary Deposit", Direction.CREDIT, days_ago=3, amount=3500.00,
                merchant_label="From TechCorp Inc"),
        make_tx(3, "Starbucks", Direction.DEBIT, days_ago=4, amount=12.50,
                merchant_label="To Starbucks"),
        make_tx(4, "Transfer from Savings", Direction.TRANSFER, days_ago=5, amount=500.00,
                merchant_label="Transfer: ****7832 → ****4521"),
        make_tx(5, "Utilities Bill", Direction.DEBIT, days_ago=20, amount=145.30,
                category="Bills", merchant_label="To City Utilities"),
        make_tx(6, "Investment Return", Direction.CREDIT, days_ago=45, amount=250.00,
                category="Investment", merchant_label="From Vanguard"),
        make_tx(7, "Annual Fee", Direction.DEBIT, days_ago=200, amount=95.00,
                merchant_label="To Summit Bank"),
    ]


@pytest.fixture
def sync_engine() -> SyncEngine:
    """Create sync engine with a test token."""
    return SyncEngine("test_token", base_url="http://summit.test")


@pytest.fixture
def synced_engine(
    sync_engine: SyncEngine,
    transfer_records: list[dict],
    accounts: list[dict],
) -> SyncEngine:
    """Sync engine holding a snapshot built from the sample payloads."""
    sync_engine.apply_snapshot_data(transfer_records, accounts)
    return sync_engine
