"""
Location domain model.

Locations are read once per pipeline run and never mutated.
"""

from dataclasses import dataclass
from typing import Any


@dataclass(frozen=True)
class Location:
    """
    A Square business location.

    Attributes:
        id: Square location ID
        name: Display name
        active: Whether the location status is ACTIVE
    """

    id: str
    name: str = ""
    active: bool = True

    def __post_init__(self) -> None:
        if not self.id or not self.id.strip():
            raise ValueError("Location id is required")

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Location":
        """Create a location from a Square location object."""
        return cls(
            id=data["id"],
            name=data.get("name") or "",
            active=str(data.get("status", "")).upper() == "ACTIVE",
        )
