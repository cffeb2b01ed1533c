"""
Location batching.

Orders Search accepts a bounded number of location ids per call, so the
active locations are split into consecutive batches.
"""

from collections.abc import Iterator, Sequence
from typing import TypeVar

from order_sync.domain.models import Location
from order_sync.utils.error_handler import InvalidArgumentException

T = TypeVar("T")

# Square rejects Orders Search calls with more than 10 location ids
MAX_LOCATION_BATCH_SIZE = 10


def split_to_chunks(items: Sequence[T], size: int) -> Iterator[list[T]]:
    """
    Lazily split ``items`` into consecutive chunks of at most ``size``.

    Order is preserved and the last chunk holds the remainder. Empty input
    yields nothing.
    """
    if size <= 0:
        raise InvalidArgumentException("Chunk size must be positive", field="size", invalid_value=size)

    for start in range(0, len(items), size):
        yield list(items[start : start + size])


class LocationBatcher:
    """Splits locations into batches accepted by a single Orders Search call."""

    def __init__(self, cap: int = MAX_LOCATION_BATCH_SIZE):
        if cap <= 0 or cap > MAX_LOCATION_BATCH_SIZE:
            raise InvalidArgumentException(
                f"Batch cap must be between 1 and {MAX_LOCATION_BATCH_SIZE}", field="cap", invalid_value=cap
            )
        self.cap = cap

    def batches(self, locations: Sequence[Location]) -> Iterator[list[Location]]:
        return split_to_chunks(locations, self.cap)
