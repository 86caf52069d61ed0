"""Location directory lookups."""

from dataclasses import dataclass
from typing import Protocol

from vin_audit.domain.scans import Location


class LocationRepository(Protocol):
    """Persistence interface for audit locations."""

    def list_locations(self) -> list[Location]:
        """Return every configured location."""


@dataclass
class LocationService:
    """Offers only active locations for session start."""

    repository: LocationRepository

    def list_active(self) -> list[Location]:
        """Return active locations sorted by name."""
        locations = self.repository.list_locations()
        return sorted(
            (location for location in locations if location.is_active),
            key=lambda location: location.name.lower(),
        )

    def is_active(self, name: str) -> bool:
        """Return true when a location with this name is active."""
        return any(location.name == name for location in self.list_active())
