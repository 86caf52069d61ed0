"""Geolocation providers for binding scans to a position."""

from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta
from typing import Protocol

from vin_audit.domain.errors import LocationUnavailable
from vin_audit.domain.scans import Coordinates


class GeolocationProvider(Protocol):
    """Source of the device's current position."""

    async def get_current_fix(self) -> Coordinates:
        """Return the current fix or raise LocationUnavailable."""


@dataclass
class ReportedGeolocation(GeolocationProvider):
    """Provider fed by fixes the agent's device reports with each request.

    A fix older than max_age_seconds counts as unavailable.
    """

    max_age_seconds: int = 120
    _fix: Coordinates | None = field(default=None, init=False)
    _reported_at: datetime | None = field(default=None, init=False)

    def report(self, latitude: float, longitude: float) -> None:
        """Store the latest device fix."""
        if not (-90.0 <= latitude <= 90.0 and -180.0 <= longitude <= 180.0):
            raise LocationUnavailable(
                f"Coordinates out of range: {latitude}, {longitude}"
            )
        self._fix = Coordinates(latitude=latitude, longitude=longitude)
        self._reported_at = datetime.now(tz=UTC)

    async def get_current_fix(self) -> Coordinates:
        """Return the last reported fix if it is still fresh."""
        if self._fix is None or self._reported_at is None:
            raise LocationUnavailable("No location reported by the device")
        age = datetime.now(tz=UTC) - self._reported_at
        if age > timedelta(seconds=self.max_age_seconds):
            raise LocationUnavailable("Reported location is too old")
        return self._fix
