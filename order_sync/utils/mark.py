"""
Correlation marks.

A mark identifies one logical operation (a whole ``collect`` run) so that its
log lines, retries and sub-calls can be correlated.
"""

import uuid
from dataclasses import dataclass, field


def _new_mark_value() -> str:
    return uuid.uuid4().hex


@dataclass(frozen=True)
class Mark:
    """Immutable correlation identifier."""

    value: str = field(default_factory=_new_mark_value)

    @classmethod
    def create_new(cls) -> "Mark":
        return cls()

    def __str__(self) -> str:
        return self.value
