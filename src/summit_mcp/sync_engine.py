"""Sync engine for the Summit Wealth Bank API."""

import asyncio
import logging
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

import httpx

from .models import ClassifiedTransaction, RawTransfer
from .utils import OwnershipResolver, classify_transfers


logger = logging.getLogger(__name__)

DEFAULT_API_URL = "http://localhost:8080"
DEFAULT_TRANSACTION_LIMIT = 100

TRANSACTIONS_PATH = "/api/transactions/recent"
ACCOUNTS_PATH = "/api/accounts"


class SyncError(Exception):
    """Error during synchronization with Summit API."""

    pass


class AuthenticationError(SyncError):
    """Token rejected by Summit API (HTTP 401)."""

    pass


@dataclass(frozen=True)
class Snapshot:
    """One fetch cycle: raw transfers, ownership and their classification."""

    transfers: tuple[RawTransfer, ...]
    resolver: OwnershipResolver
    transactions: tuple[ClassifiedTransaction, ...]
    fetched_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


def parse_transfers(items: list[dict[str, Any]]) -> list[RawTransfer]:
    """Parse transfer records, dropping repeated IDs.

    Args:
        items: Records from the transactions endpoint.

    Returns:
        Transfers in response order; the first record wins for a repeated ID.

    Raises:
        SyncError: If a record cannot be parsed.
    """
    transfers: list[RawTransfer] = []
    seen: set = set()

    for item in items:
        if not isinstance(item, dict):
            raise SyncError(f"Invalid transfer record: {item!r}")
        try:
            transfer = RawTransfer.from_dict(item)
        except ValueError as e:
            raise SyncError(f"Invalid transfer record: {e}") from e

        if transfer.id in seen:
            logger.warning("Duplicate transfer id %s in snapshot, skipping", transfer.id)
            continue
        seen.add(transfer.id)
        transfers.append(transfer)

    return transfers


def build_snapshot(
    transfer_items: list[dict[str, Any]],
    account_items: list[dict[str, Any]],
) -> Snapshot:
    """Parse API payloads and classify them.

    Raises:
        SyncError: If a payload is not a list or a record is malformed.
    """
    if not isinstance(transfer_items, list):
        raise SyncError("Transactions response is not a list")
    if not isinstance(account_items, list):
        raise SyncError("Accounts response is not a list")

    transfers = parse_transfers(transfer_items)

    try:
        resolver = OwnershipResolver.from_accounts(account_items)
    except (KeyError, TypeError) as e:
        raise SyncError(f"Invalid account record: {e}") from e

    transactions = classify_transfers(transfers, resolver)
    return Snapshot(
        transfers=tuple(transfers),
        resolver=resolver,
        transactions=tuple(transactions),
    )


class SyncEngine:
    """Synchronization engine for Summit transaction data."""

    def __init__(
        self,
        token: str,
        base_url: str = DEFAULT_API_URL,
        limit: int = DEFAULT_TRANSACTION_LIMIT,
    ):
        """Initialize sync engine.

        Args:
            token: Summit bearer token.
            base_url: API base URL.
            limit: Number of recent transactions to fetch.
        """
        self.token = token
        self.base_url = base_url.rstrip("/")
        self.limit = limit
        self.snapshot: Snapshot | None = None
        self.last_error: str | None = None

    async def _get_json(self, client: httpx.AsyncClient, path: str, **params: Any) -> Any:
        try:
            response = await client.get(
                f"{self.base_url}{path}",
                params=params or None,
                headers={
                    "Authorization": f"Bearer {self.token}",
                    "Accept": "application/json",
                },
                timeout=30.0,
            )
        except httpx.HTTPError as e:
            raise SyncError(f"HTTP error fetching {path}: {e}") from e

        if response.status_code == 401:
            raise AuthenticationError(f"Token rejected fetching {path}")

        if response.status_code != 200:
            raise SyncError(
                f"API returned status {response.status_code} for {path}: {response.text}"
            )

        try:
            return response.json()
        except ValueError as e:
            raise SyncError(f"Invalid JSON response from {path}: {e}") from e

    async def fetch(self) -> tuple[Any, Any]:
        """Fetch recent transfers and the viewer's accounts concurrently.

        Returns:
            Tuple of (transfer records, account records).

        Raises:
            SyncError: If either request fails.
        """
        async with httpx.AsyncClient() as client:
            transfers, accounts = await asyncio.gather(
                self._get_json(client, TRANSACTIONS_PATH, limit=self.limit),
                self._get_json(client, ACCOUNTS_PATH),
            )
        return transfers, accounts

    async def refresh(self) -> dict[str, Any]:
        """Fetch and classify a new snapshot, replacing the current one.

        The current snapshot is kept if the fetch fails.

        Returns:
            Dictionary with refresh results.

        Raises:
            SyncError: If fetching or parsing fails.
        """
        start_time = time.time()

        try:
            transfer_items, account_items = await self.fetch()
            snapshot = build_snapshot(transfer_items or [], account_items or [])
        except SyncError as e:
            self.last_error = str(e)
            logger.error("Refresh failed: %s", e)
            raise

        result = self._replace(snapshot)
        result["sync_duration_ms"] = int((time.time() - start_time) * 1000)
        return result

    def apply_snapshot_data(
        self,
        transfer_items: list[dict[str, Any]],
        account_items: list[dict[str, Any]],
    ) -> dict[str, Any]:
        """Apply API payloads directly (for testing without HTTP).

        Args:
            transfer_items: Simulated transactions response.
            account_items: Simulated accounts response.

        Returns:
            Dictionary with refresh results.
        """
        return self._replace(build_snapshot(transfer_items, account_items))

    def _replace(self, snapshot: Snapshot) -> dict[str, Any]:
        self.snapshot = snapshot
        self.last_error = None
        logger.info(
            "Snapshot replaced: %d transactions, %d accounts",
            len(snapshot.transactions),
            len(snapshot.resolver.owned),
        )
        return {
            "status": "synced",
            "transactions": len(snapshot.transactions),
            "accounts": len(snapshot.resolver.owned),
            "fetched_at": snapshot.fetched_at.isoformat(),
        }

    def get_status(self) -> dict[str, Any]:
        """Get sync state of the engine."""
        snapshot = self.snapshot
        return {
            "api_url": self.base_url,
            "limit": self.limit,
            "last_sync_time": snapshot.fetched_at.isoformat() if snapshot else None,
            "transactions": len(snapshot.transactions) if snapshot else 0,
            "accounts": len(snapshot.resolver.owned) if snapshot else 0,
            "last_error": self.last_error,
        }
