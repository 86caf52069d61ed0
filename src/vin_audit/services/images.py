"""Storage for the still images behind camera and upload scans."""

from typing import Protocol

_EXTENSIONS = {"image/jpeg": "jpg", "image/png": "png", "image/webp": "webp"}


class ImageStore(Protocol):
    """Object storage for scan images."""

    def upload(self, vin: str, session_id: str, image_bytes: bytes) -> str:
        """Store an image and return a URL referencing it."""


def detect_mime_type(image_bytes: bytes) -> str:
    """Infer a basic image MIME type from file signatures."""
    if image_bytes.startswith(b"\xff\xd8\xff"):
        return "image/jpeg"
    if image_bytes.startswith(b"\x89PNG\r\n\x1a\n"):
        return "image/png"
    if image_bytes[:4] == b"RIFF" and image_bytes[8:12] == b"WEBP":
        return "image/webp"
    return "image/jpeg"


def file_extension(mime_type: str) -> str:
    """Return the file extension used when storing an image of this type."""
    return _EXTENSIONS.get(mime_type, "jpg")
