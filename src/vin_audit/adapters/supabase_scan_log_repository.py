"""Supabase-backed audit log of scan records."""

from dataclasses import dataclass
from datetime import datetime
from uuid import UUID

from supabase import Client

from vin_audit.domain.scans import CaptureMethod, Coordinates, ScanRecord
from vin_audit.services.recorder import ScanLogRepository

_COLUMNS = (
    "id, session_id, vin, location, captured_at, latitude, longitude, "
    "image_url, method, user_id, user_email"
)


@dataclass
class SupabaseScanLogRepository(ScanLogRepository):
    """Supabase implementation of the append-only scan log."""

    client: Client

    def append(self, record: ScanRecord) -> ScanRecord:
        """Insert a scan row and return it as stored."""
        response = (
            self.client.table("scan_logs")
            .insert(
                {
                    "id": str(record.id),
                    "session_id": record.session_id,
                    "vin": record.vin,
                    "location": record.location,
                    "captured_at": record.captured_at.isoformat(),
                    "latitude": record.coordinates.latitude,
                    "longitude": record.coordinates.longitude,
                    "image_url": record.image_url,
                    "method": record.method.value,
                    "user_id": record.user_id,
                    "user_email": record.user_email,
                }
            )
            .execute()
        )
        if not response.data:
            raise RuntimeError("Failed to append scan log")
        return _to_record(response.data[0])

    def query_all(self, session_id: str | None = None) -> list[ScanRecord]:
        """Return scan rows, newest first, optionally for one session."""
        query = self.client.table("scan_logs").select(_COLUMNS)
        if session_id is not None:
            query = query.eq("session_id", session_id)
        response = query.order("captured_at", desc=True).execute()
        return [_to_record(row) for row in response.data or []]


def _to_record(row: dict[str, object]) -> ScanRecord:
    return ScanRecord(
        id=UUID(str(row["id"])),
        session_id=str(row["session_id"]),
        vin=str(row["vin"]),
        location=str(row["location"]),
        captured_at=datetime.fromisoformat(str(row["captured_at"])),
        coordinates=Coordinates(
            latitude=float(row["latitude"]),
            longitude=float(row["longitude"]),
        ),
        method=CaptureMethod(str(row["method"])),
        user_id=str(row["user_id"]),
        user_email=str(row["user_email"]),
        image_url=str(row["image_url"]) if row.get("image_url") else None,
    )
