"""
Search-side domain models: time windows, search requests and pages.
"""

from dataclasses import dataclass
from datetime import datetime
from typing import TYPE_CHECKING

from order_sync.utils.datetime_utils import ensure_utc_datetime
from order_sync.utils.error_handler import InvalidArgumentException

from .order import NormalizedOrder

if TYPE_CHECKING:
    from order_sync.db.square_schemas import SquareOrder


def _normalize_cursor(cursor: str | None) -> str | None:
    if cursor is None or not cursor.strip():
        return None
    return cursor


@dataclass(frozen=True)
class TimeWindow:
    """
    Half-open ``updated_at`` window to collect orders for.

    Naive datetimes are taken as UTC. ``validate()`` enforces
    ``start_utc < end_utc``.
    """

    start_utc: datetime
    end_utc: datetime

    def __post_init__(self) -> None:
        object.__setattr__(self, "start_utc", ensure_utc_datetime(self.start_utc))
        object.__setattr__(self, "end_utc", ensure_utc_datetime(self.end_utc))

    def validate(self) -> None:
        if self.start_utc >= self.end_utc:
            raise InvalidArgumentException(
                f"Start date {self.start_utc.isoformat()} must be earlier than end date {self.end_utc.isoformat()}",
                field="window",
                invalid_value=f"{self.start_utc.isoformat()}..{self.end_utc.isoformat()}",
            )


@dataclass(frozen=True)
class SearchRequest:
    """
    One Orders Search call for one location batch.

    Built fresh for every page; blank cursors are stored as ``None``.
    """

    location_ids: tuple[str, ...]
    window: TimeWindow
    page_size: int
    cursor: str | None = None
    states: tuple[str, ...] = ()

    def __post_init__(self) -> None:
        object.__setattr__(self, "location_ids", tuple(self.location_ids))
        object.__setattr__(self, "states", tuple(self.states))
        object.__setattr__(self, "cursor", _normalize_cursor(self.cursor))


@dataclass(frozen=True)
class RawOrdersPage:
    """Orders Search response: raw orders plus the continuation cursor."""

    orders: tuple["SquareOrder", ...] = ()
    cursor: str | None = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "orders", tuple(self.orders))
        object.__setattr__(self, "cursor", _normalize_cursor(self.cursor))


@dataclass(frozen=True)
class PageResult:
    """One page of normalized orders; no cursor means the batch is exhausted."""

    orders: tuple[NormalizedOrder, ...] = ()
    cursor: str | None = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "orders", tuple(self.orders))
        object.__setattr__(self, "cursor", _normalize_cursor(self.cursor))

    @property
    def has_more(self) -> bool:
        return self.cursor is not None
