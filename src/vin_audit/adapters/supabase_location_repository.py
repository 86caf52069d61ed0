"""Supabase-backed location directory."""

from dataclasses import dataclass

from supabase import Client

from vin_audit.domain.scans import Location
from vin_audit.services.locations import LocationRepository


@dataclass
class SupabaseLocationRepository(LocationRepository):
    """Reads audit locations from Supabase."""

    client: Client

    def list_locations(self) -> list[Location]:
        """Return all locations; rows without a status count as active."""
        response = self.client.table("locations").select("name, status").execute()
        return [
            Location(
                name=str(row["name"]),
                is_active=(row.get("status") or "active") == "active",
            )
            for row in response.data or []
        ]
