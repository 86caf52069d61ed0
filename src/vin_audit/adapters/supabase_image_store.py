"""Supabase Storage bucket for scan images."""

from dataclasses import dataclass
from uuid import uuid4

from supabase import Client

from vin_audit.services.images import ImageStore, detect_mime_type, file_extension


@dataclass
class SupabaseImageStore(ImageStore):
    """Uploads scan stills to a Supabase Storage bucket."""

    client: Client
    bucket: str

    def upload(self, vin: str, session_id: str, image_bytes: bytes) -> str:
        """Upload a still under the session folder and return its public URL."""
        mime_type = detect_mime_type(image_bytes)
        path = f"{session_id}/{vin}-{uuid4().hex}.{file_extension(mime_type)}"
        storage = self.client.storage.from_(self.bucket)
        storage.upload(
            path=path,
            file=image_bytes,
            file_options={"content-type": mime_type},
        )
        return storage.get_public_url(path)
