"""MCP Server for Summit Wealth Bank transaction history."""

import json
import logging
import os
from typing import Any

from mcp.server import Server
from mcp.types import Resource, TextContent, Tool

from .analytics import (
    get_accounts_resource,
    search_transactions,
    summarize_directions,
)
from .models import FilterCriteria, RawTransfer
from .sync_engine import DEFAULT_API_URL, DEFAULT_TRANSACTION_LIMIT, SyncEngine, SyncError
from .utils import OwnershipResolver, build_directory, classify_transfers


logger = logging.getLogger(__name__)

# Initialize MCP server
server = Server("summit-mcp")

# Global state
_sync_engine: SyncEngine | None = None

CRITERIA_PROPERTIES = {
    "search": {
        "type": "string",
        "description": "Search in description, counterpart and category (case-insensitive)",
    },
    "type": {
        "type": "string",
        "enum": ["all", "income", "expense"],
        "description": "Transaction type. Internal transfers only appear under 'all'",
        "default": "all",
    },
    "date_range": {
        "type": "string",
        "enum": ["7", "30", "90", "all"],
        "description": "Look-back window in days",
        "default": "30",
    },
}


def get_sync_engine() -> SyncEngine:
    """Get or create sync engine instance."""
    global _sync_engine
    if _sync_engine is None:
        token = os.environ.get("SUMMIT_TOKEN")
        if not token:
            raise ValueError(
                "SUMMIT_TOKEN environment variable is required. "
                "Use the bearer token returned by /api/auth/login"
            )
        _sync_engine = SyncEngine(
            token,
            base_url=os.environ.get("SUMMIT_API_URL", DEFAULT_API_URL),
            limit=int(os.environ.get("SUMMIT_TRANSACTION_LIMIT", DEFAULT_TRANSACTION_LIMIT)),
        )
    return _sync_engine


def init_for_testing(engine: SyncEngine) -> None:
    """Initialize server with a prepared sync engine.

    Args:
        engine: Engine to use, typically filled via apply_snapshot_data.
    """
    global _sync_engine
    _sync_engine = engine


def _criteria_from(arguments: dict[str, Any], default_range: str | None = None) -> FilterCriteria:
    return FilterCriteria.from_arguments(
        search=arguments.get("search"),
        tx_type=arguments.get("type"),
        date_range=arguments.get("date_range", default_range),
    )


async def _current_transactions(engine: SyncEngine) -> tuple[list, str | None]:
    """Transactions of the current snapshot, fetching the first one on demand.

    A failed fetch yields an empty list and the error message.
    """
    if engine.snapshot is None:
        try:
            await engine.refresh()
        except SyncError as e:
            logger.warning("Serving empty transaction list: %s", e)
            return [], str(e)
    return list(engine.snapshot.transactions), None


def _to_text(result: dict[str, Any]) -> list[TextContent]:
    return [TextContent(type="text", text=json.dumps(result, ensure_ascii=False, indent=2))]


# ============================================================================
# Tools
# ============================================================================

@server.list_tools()
async def list_tools() -> list[Tool]:
    """List available tools."""
    return [
        Tool(
            name="refresh_transactions",
            description="Fetch recent transfers and accounts from Summit. Use to refresh data before analysis.",
            inputSchema={
                "type": "object",
                "properties": {},
            },
        ),
        Tool(
            name="list_transactions",
            description="List classified transactions (CREDIT, DEBIT, TRANSFER). Answers: 'What came in this week?', 'Find the Amazon purchase'",
            inputSchema={
                "type": "object",
                "properties": {
                    **CRITERIA_PROPERTIES,
                    "limit": {
                        "type": "integer",
                        "description": "Maximum results",
                        "default": 50,
                    },
                },
            },
        ),
        Tool(
            name="summarize_transactions",
            description="Count and total transactions per direction. Answers: 'How much came in this month?', 'How much did I send out?'",
            inputSchema={
                "type": "object",
                "properties": CRITERIA_PROPERTIES,
            },
        ),
        Tool(
            name="classify_transfers",
            description="Classify raw transfer records against a set of owned accounts, without calling the API.",
            inputSchema={
                "type": "object",
                "properties": {
                    "transfers": {
                        "type": "array",
                        "items": {"type": "object"},
                        "description": "Records with id, fromAccountId, toAccountId, amount, timestamp, description",
                    },
                    "owned_account_ids": {
                        "type": "array",
                        "description": "Account IDs belonging to the viewer",
                    },
                    "accounts": {
                        "type": "array",
                        "items": {"type": "object"},
                        "description": "Account directory records with id and accountNumber",
                    },
                    **CRITERIA_PROPERTIES,
                },
                "required": ["transfers", "owned_account_ids"],
            },
        ),
    ]


@server.call_tool()
async def call_tool(name: str, arguments: dict[str, Any]) -> list[TextContent]:
    """Handle tool calls."""
    arguments = arguments or {}

    if name == "refresh_transactions":
        engine = get_sync_engine()
        try:
            result = await engine.refresh()
        except SyncError as e:
            result = {"status": "error", "error": str(e)}
        return _to_text(result)

    elif name == "list_transactions":
        engine = get_sync_engine()
        criteria = _criteria_from(arguments)
        transactions, error = await _current_transactions(engine)
        result = search_transactions(
            transactions,
            criteria,
            limit=arguments.get("limit", 50),
        )
        if error:
            result["error"] = error
        return _to_text(result)

    elif name == "summarize_transactions":
        engine = get_sync_engine()
        criteria = _criteria_from(arguments)
        transactions, error = await _current_transactions(engine)
        result = summarize_directions(transactions, criteria)
        if error:
            result["error"] = error
        return _to_text(result)

    elif name == "classify_transfers":
        transfers = [RawTransfer.from_dict(item) for item in arguments.get("transfers", [])]
        resolver = OwnershipResolver(
            arguments.get("owned_account_ids", []),
            build_directory(arguments.get("accounts") or []),
        )
        criteria = _criteria_from(arguments, default_range="all")
        result = search_transactions(
            classify_transfers(transfers, resolver),
            criteria,
            limit=len(transfers),
        )
        return _to_text(result)

    else:
        raise ValueError(f"Unknown tool: {name}")


# ============================================================================
# Resources
# ============================================================================

@server.list_resources()
async def list_resources() -> list[Resource]:
    """List available resources."""
    return [
        Resource(
            uri="summit://accounts",
            name="Accounts",
            description="Viewer's accounts with display numbers",
            mimeType="application/json",
        ),
        Resource(
            uri="summit://sync-status",
            name="Sync Status",
            description="Last refresh time and snapshot statistics",
            mimeType="application/json",
        ),
    ]


@server.read_resource()
async def read_resource(uri: str) -> str:
    """Read resource content."""
    engine = get_sync_engine()
    uri = str(uri)

    if uri == "summit://accounts":
        snapshot = engine.snapshot
        result = get_accounts_resource(snapshot.resolver if snapshot else None)
    elif uri == "summit://sync-status":
        result = engine.get_status()
    else:
        raise ValueError(f"Unknown resource: {uri}")

    return json.dumps(result, ensure_ascii=False, indent=2)


# ============================================================================
# Main
# ============================================================================

def main() -> None:
    """Run the MCP server."""
    import asyncio

    from mcp.server.stdio import stdio_server

    # stdout carries the MCP protocol
    logging.basicConfig(
        level=os.environ.get("SUMMIT_LOG_LEVEL", "INFO").upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    async def run():
        async with stdio_server() as (read_stream, write_stream):
            await server.run(read_stream, write_stream, server.create_initialization_options())

    asyncio.run(run())


if __name__ == "__main__":
    main()
