"""Per-session record of VINs already accepted."""

from dataclasses import dataclass
from typing import Protocol


class SessionLedger(Protocol):
    """Tracks which VINs a session has accepted."""

    def contains(self, session_id: str, vin: str) -> bool:
        """Return true when the VIN was already accepted in the session."""

    def record(self, session_id: str, vin: str) -> None:
        """Mark the VIN as accepted in the session."""

    def identifiers(self, session_id: str) -> list[str]:
        """Return accepted VINs in acceptance order."""

    def forget(self, session_id: str) -> None:
        """Drop all state held for the session."""


@dataclass
class InMemorySessionLedger(SessionLedger):
    """In-memory ledger keyed by session id."""

    _sessions: dict[str, dict[str, None]]

    def __init__(self) -> None:
        self._sessions = {}

    def contains(self, session_id: str, vin: str) -> bool:
        """Return true when the uppercased VIN is present for the session."""
        return vin.upper() in self._sessions.get(session_id, {})

    def record(self, session_id: str, vin: str) -> None:
        """Add the uppercased VIN to the session's ordered set."""
        self._sessions.setdefault(session_id, {})[vin.upper()] = None

    def identifiers(self, session_id: str) -> list[str]:
        """Return accepted VINs for the session, oldest first."""
        return list(self._sessions.get(session_id, {}))

    def forget(self, session_id: str) -> None:
        """Remove the session from the ledger."""
        self._sessions.pop(session_id, None)
