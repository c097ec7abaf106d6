"""Tests for sync engine."""

from unittest.mock import AsyncMock, Mock, patch

import httpx
import pytest

from summit_mcp.models import Direction
from summit_mcp.sync_engine import (
    AuthenticationError,
    SyncEngine,
    SyncError,
    build_snapshot,
    parse_transfers,
)


def make_response(status_code: int = 200, payload=None, text: str = "") -> Mock:
    response = Mock()
    response.status_code = status_code
    response.text = text
    if isinstance(payload, Exception):
        response.json.side_effect = payload
    else:
        response.json.return_value = payload
    return response


def route(transactions: Mock, accounts: Mock):
    """Build a client.get side effect answering by path."""

    async def get(url, **kwargs):
        if url.endswith("/api/transactions/recent"):
            return transactions
        if url.endswith("/api/accounts"):
            return accounts
        raise AssertionError(f"Unexpected URL {url}")

    return get


class TestParseTransfers:
    """Test parsing of transfer payloads."""

    def test_parses_records(self, transfer_records: list[dict]):
        transfers = parse_transfers(transfer_records)

        assert [t.id for t in transfers] == [1, 2, 3, 4]
        assert transfers[0].from_account_id == 101
        assert transfers[0].amount == 89.99
        assert transfers[2].description is None

    def test_duplicate_ids_keep_first(self, transfer_records: list[dict]):
        duplicate = {**transfer_records[0], "description": "Duplicate"}
        transfers = parse_transfers(transfer_records + [duplicate])

        assert len(transfers) == 4
        assert transfers[0].description == "Amazon Purchase"

    def test_missing_field(self):
        with pytest.raises(SyncError, match="fromAccountId"):
            parse_transfers([{"id": 1, "toAccountId": 2, "amount": 1, "timestamp": "2025-11-28"}])

    def test_bad_timestamp(self):
        with pytest.raises(SyncError):
            parse_transfers([
                {"id": 1, "fromAccountId": 1, "toAccountId": 2, "amount": 1, "timestamp": "yesterday"}
            ])

    def test_short_fraction_timestamp(self):
        transfers = parse_transfers([
            {"id": 1, "fromAccountId": 1, "toAccountId": 2, "amount": 1, "timestamp": "2025-11-28T10:15:30.12"}
        ])

        assert transfers[0].timestamp.microsecond == 120000

    def test_non_dict_record(self):
        with pytest.raises(SyncError):
            parse_transfers(["not a record"])


class TestBuildSnapshot:
    """Test snapshot construction."""

    def test_builds_classified_snapshot(self, transfer_records: list[dict], accounts: list[dict]):
        snapshot = build_snapshot(transfer_records, accounts)

        assert len(snapshot.transfers) == 4
        assert snapshot.resolver.owned == frozenset({101, 102, 103})
        assert [tx.direction for tx in snapshot.transactions] == [
            Direction.DEBIT,
            Direction.CREDIT,
            Direction.TRANSFER,
            Direction.DEBIT,
        ]
        assert snapshot.fetched_at.tzinfo is not None

    def test_empty_payloads(self):
        snapshot = build_snapshot([], [])
        assert snapshot.transactions == ()
        assert snapshot.resolver.owned == frozenset()

    def test_non_list_payload(self, accounts: list[dict]):
        with pytest.raises(SyncError, match="not a list"):
            build_snapshot({"error": "nope"}, accounts)

    def test_account_without_id(self, transfer_records: list[dict]):
        with pytest.raises(SyncError, match="account"):
            build_snapshot(transfer_records, [{"accountNumber": "****0001"}])


class TestSyncEngine:
    """Test sync engine operations."""

    def test_apply_snapshot_data(self, sync_engine: SyncEngine, transfer_records, accounts):
        result = sync_engine.apply_snapshot_data(transfer_records, accounts)

        assert result["status"] == "synced"
        assert result["transactions"] == 4
        assert result["accounts"] == 3
        assert sync_engine.snapshot is not None

    def test_apply_replaces_whole_snapshot(self, synced_engine: SyncEngine, accounts):
        old = synced_engine.snapshot
        synced_engine.apply_snapshot_data([], accounts)

        assert synced_engine.snapshot is not old
        assert synced_engine.snapshot.transactions == ()
        assert len(old.transactions) == 4

    def test_status_before_sync(self, sync_engine: SyncEngine):
        status = sync_engine.get_status()

        assert status["last_sync_time"] is None
        assert status["transactions"] == 0
        assert status["api_url"] == "http://summit.test"

    def test_status_after_sync(self, synced_engine: SyncEngine):
        status = synced_engine.get_status()

        assert status["last_sync_time"] is not None
        assert status["transactions"] == 4
        assert status["accounts"] == 3
        assert status["last_error"] is None

    def test_base_url_trailing_slash(self):
        assert SyncEngine("t", base_url="http://summit.test/").base_url == "http://summit.test"

    @pytest.mark.asyncio
    async def test_refresh(self, sync_engine: SyncEngine, transfer_records, accounts):
        with patch("httpx.AsyncClient") as mock_client:
            get = AsyncMock(side_effect=route(
                make_response(payload=transfer_records),
                make_response(payload=accounts),
            ))
            mock_client.return_value.__aenter__.return_value.get = get

            result = await sync_engine.refresh()

        assert result["status"] == "synced"
        assert result["transactions"] == 4
        assert result["sync_duration_ms"] >= 0
        assert len(sync_engine.snapshot.transactions) == 4

        calls = {call.args[0]: call.kwargs for call in get.call_args_list}
        transactions_call = calls["http://summit.test/api/transactions/recent"]
        assert transactions_call["params"] == {"limit": 100}
        assert transactions_call["headers"]["Authorization"] == "Bearer test_token"
        assert calls["http://summit.test/api/accounts"]["params"] is None

    @pytest.mark.asyncio
    async def test_refresh_unauthorized(self, synced_engine: SyncEngine, accounts):
        old = synced_engine.snapshot
        with patch("httpx.AsyncClient") as mock_client:
            mock_client.return_value.__aenter__.return_value.get = AsyncMock(side_effect=route(
                make_response(status_code=401),
                make_response(payload=accounts),
            ))

            with pytest.raises(AuthenticationError):
                await synced_engine.refresh()

        assert synced_engine.snapshot is old
        assert "Token rejected" in synced_engine.last_error

    @pytest.mark.asyncio
    async def test_refresh_server_error(self, sync_engine: SyncEngine, transfer_records):
        with patch("httpx.AsyncClient") as mock_client:
            mock_client.return_value.__aenter__.return_value.get = AsyncMock(side_effect=route(
                make_response(payload=transfer_records),
                make_response(status_code=500, text="boom"),
            ))

            with pytest.raises(SyncError, match="status 500"):
                await sync_engine.refresh()

        assert sync_engine.snapshot is None

    @pytest.mark.asyncio
    async def test_refresh_network_error(self, sync_engine: SyncEngine):
        with patch("httpx.AsyncClient") as mock_client:
            mock_client.return_value.__aenter__.return_value.get = AsyncMock(
                side_effect=httpx.ConnectError("Connection refused")
            )

            with pytest.raises(SyncError, match="HTTP error"):
                await sync_engine.refresh()

        assert sync_engine.get_status()["last_error"] is not None

    @pytest.mark.asyncio
    async def test_refresh_invalid_json(self, sync_engine: SyncEngine, accounts):
        with patch("httpx.AsyncClient") as mock_client:
            mock_client.return_value.__aenter__.return_value.get = AsyncMock(side_effect=route(
                make_response(payload=ValueError("Expecting value")),
                make_response(payload=accounts),
            ))

            with pytest.raises(SyncError, match="Invalid JSON"):
                await sync_engine.refresh()
