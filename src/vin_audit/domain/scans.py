"""Domain models for scan records and audit sessions."""

import re
from dataclasses import dataclass, field
from datetime import datetime
from enum import StrEnum
from uuid import UUID


class CaptureMethod(StrEnum):
    """How a candidate VIN was obtained."""

    CAMERA = "camera"
    UPLOAD = "upload"
    MANUAL = "manual"
    VIDEO = "video"


@dataclass(frozen=True)
class Coordinates:
    """Geographic fix attached to a scan."""

    latitude: float
    longitude: float


UNKNOWN_COORDINATES = Coordinates(latitude=0.0, longitude=0.0)


@dataclass(frozen=True)
class Identity:
    """Acting user supplied by the surrounding auth layer."""

    user_id: str
    user_email: str


@dataclass(frozen=True)
class Location:
    """A location offered for audit sessions."""

    name: str
    is_active: bool


@dataclass(frozen=True)
class ScanCandidate:
    """Everything needed to persist a scan except identity and timestamp."""

    vin: str
    session_id: str
    location: str
    coordinates: Coordinates
    method: CaptureMethod
    identity: Identity
    image_url: str | None = None


@dataclass(frozen=True)
class ScanRecord:
    """A persisted, immutable scan entry in the audit log."""

    id: UUID
    session_id: str
    vin: str
    location: str
    captured_at: datetime
    coordinates: Coordinates
    method: CaptureMethod
    user_id: str
    user_email: str
    image_url: str | None = None


@dataclass
class AuditSession:
    """An active audit session at one location.

    Records are kept most-recent-first.
    """

    id: str
    location: str
    identity: Identity
    started_at: datetime
    records: list[ScanRecord] = field(default_factory=list)

    def add(self, record: ScanRecord) -> None:
        self.records.insert(0, record)


@dataclass(frozen=True)
class SessionSummary:
    """Snapshot returned when a session is finished."""

    session_id: str
    location: str
    records: list[ScanRecord]

    @property
    def total(self) -> int:
        return len(self.records)


def derive_session_id(location_name: str, started_at: datetime) -> str:
    """Build a session id from the location and start time.

    Format: up to six uppercase alphanumerics of the location name, then
    DDMMYYYYHHMMSS and the first two digits of the milliseconds.
    """
    prefix = re.sub(r"[^A-Za-z0-9]", "", location_name).upper()[:6]
    centiseconds = f"{started_at.microsecond // 1000:03d}"[:2]
    return f"{prefix}{started_at.strftime('%d%m%Y%H%M%S')}{centiseconds}"
