"""Transaction records and filter criteria for the Summit MCP server."""

import re
from collections.abc import Hashable
from dataclasses import dataclass
from datetime import date, datetime, timezone
from enum import Enum
from typing import Any


DEFAULT_DESCRIPTION = "Transfer"
DEFAULT_CATEGORY = "Transfer"

# Epoch values above this are milliseconds (year 5138 in seconds)
EPOCH_MILLIS_THRESHOLD = 10**11

_FRACTION_RE = re.compile(r"(\.\d+)")


def parse_timestamp(value: Any) -> datetime:
    """Parse a ledger timestamp into an aware datetime.

    Accepts datetime and date objects, ISO-8601 strings (date-only, with or
    without offset, trailing "Z"), epoch seconds or milliseconds, and the
    [year, month, day, hour, minute, second, nanos] array form. Values
    without an offset are taken as UTC.

    Args:
        value: Raw timestamp value.

    Returns:
        Timezone-aware datetime.

    Raises:
        ValueError: If the value cannot be parsed.
    """
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, date):
        parsed = datetime(value.year, value.month, value.day)
    elif isinstance(value, bool):
        raise ValueError(f"Invalid timestamp: {value!r}")
    elif isinstance(value, (int, float)):
        seconds = value / 1000 if abs(value) > EPOCH_MILLIS_THRESHOLD else value
        return datetime.fromtimestamp(seconds, tz=timezone.utc)
    elif isinstance(value, (list, tuple)):
        if len(value) < 3:
            raise ValueError(f"Invalid timestamp: {value!r}")
        parts = [int(part) for part in value[:6]]
        parts += [0] * (6 - len(parts))
        micros = int(value[6]) // 1000 if len(value) > 6 else 0
        parsed = datetime(*parts, micros)
    elif isinstance(value, str):
        text = value.strip()
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        # Java serializes nanoseconds and drops trailing zeros
        text = _FRACTION_RE.sub(lambda m: m.group(1)[:7].ljust(7, "0"), text)
        try:
            parsed = datetime.fromisoformat(text)
        except ValueError as e:
            raise ValueError(f"Invalid timestamp: {value!r}") from e
    else:
        raise ValueError(f"Invalid timestamp: {value!r}")

    return as_utc(parsed)


def as_utc(value: datetime) -> datetime:
    """Attach UTC to a naive datetime; aware values pass through."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


class Direction(str, Enum):
    """Direction of a transfer relative to the viewer."""

    CREDIT = "CREDIT"  # incoming
    DEBIT = "DEBIT"  # outgoing
    TRANSFER = "TRANSFER"  # both legs owned


class TypeFilter(str, Enum):
    """Transaction type selector of the listing."""

    ALL = "all"
    INCOME = "income"
    EXPENSE = "expense"


class DateWindow(str, Enum):
    """Look-back window of the listing, in days."""

    LAST_7_DAYS = "7"
    LAST_30_DAYS = "30"
    LAST_90_DAYS = "90"
    ALL = "all"

    @property
    def days(self) -> int | None:
        """Number of days in the window, None for all time."""
        if self is DateWindow.ALL:
            return None
        return int(self.value)


@dataclass(frozen=True)
class RawTransfer:
    """Transfer record as returned by the ledger API."""

    id: Hashable
    from_account_id: Hashable
    to_account_id: Hashable
    amount: float
    timestamp: datetime
    description: str | None = None

    def __post_init__(self):
        object.__setattr__(self, "timestamp", as_utc(self.timestamp))

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "RawTransfer":
        """Build a transfer from an API record.

        Args:
            data: Record with id, fromAccountId, toAccountId, amount,
                timestamp and optional description.

        Returns:
            Parsed transfer.

        Raises:
            ValueError: If a required field is missing or malformed.
        """
        try:
            transfer_id = data["id"]
            from_account_id = data["fromAccountId"]
            to_account_id = data["toAccountId"]
            amount = float(data["amount"])
            timestamp = parse_timestamp(data["timestamp"])
        except KeyError as e:
            raise ValueError(f"Transfer record is missing field {e}") from e
        except TypeError as e:
            raise ValueError(f"Malformed transfer record: {e}") from e

        return cls(
            id=transfer_id,
            from_account_id=from_account_id,
            to_account_id=to_account_id,
            amount=amount,
            timestamp=timestamp,
            description=data.get("description"),
        )


@dataclass(frozen=True)
class ClassifiedTransaction:
    """Transfer classified from the viewer's point of view."""

    id: Hashable
    description: str
    amount: float
    date: datetime
    direction: Direction
    category: str
    merchant_label: str
    display_account_number: str
    from_account_id: Hashable
    to_account_id: Hashable

    def __post_init__(self):
        object.__setattr__(self, "date", as_utc(self.date))

    def to_dict(self) -> dict[str, Any]:
        """Render as a JSON-friendly dict."""
        return {
            "id": self.id,
            "description": self.description,
            "amount": self.amount,
            "date": self.date.isoformat(),
            "direction": self.direction.value,
            "category": self.category,
            "merchant_label": self.merchant_label,
            "account_number": self.display_account_number,
            "from_account_id": self.from_account_id,
            "to_account_id": self.to_account_id,
        }


@dataclass(frozen=True)
class FilterCriteria:
    """Snapshot of the listing filters.

    Attributes:
        search_term: Case-insensitive substring to look for.
        type_filter: Which directions to keep.
        date_window: How far back to look.
    """

    search_term: str = ""
    type_filter: TypeFilter = TypeFilter.ALL
    date_window: DateWindow = DateWindow.LAST_30_DAYS

    @classmethod
    def identity(cls) -> "FilterCriteria":
        """Criteria that keep every transaction."""
        return cls(search_term="", type_filter=TypeFilter.ALL, date_window=DateWindow.ALL)

    @classmethod
    def from_arguments(
        cls,
        search: str | None = None,
        tx_type: str | None = None,
        date_range: str | int | None = None,
    ) -> "FilterCriteria":
        """Parse tool arguments into criteria.

        Args:
            search: Search text, None for no search.
            tx_type: "all", "income" or "expense". Defaults to "all".
            date_range: 7, 30, 90 or "all". Defaults to 30.

        Returns:
            Parsed criteria.

        Raises:
            ValueError: If tx_type or date_range is not a known value.
        """
        type_filter = TypeFilter(str(tx_type).lower()) if tx_type else TypeFilter.ALL
        if date_range is None:
            date_window = DateWindow.LAST_30_DAYS
        else:
            date_window = DateWindow(str(date_range).lower())

        return cls(
            search_term=search or "",
            type_filter=type_filter,
            date_window=date_window,
        )

    def is_default(self) -> bool:
        """Check whether these are the criteria the listing starts with."""
        return self == FilterCriteria()

    def to_dict(self) -> dict[str, Any]:
        return {
            "search": self.search_term,
            "type": self.type_filter.value,
            "date_range": self.date_window.value,
        }
