"""Recognition gateway for reading VINs from images."""

import base64
from dataclasses import dataclass
from typing import Protocol

from vin_audit.domain.errors import RecognitionEmpty
from vin_audit.services.images import detect_mime_type

SINGLE_VIN_PROMPT = (
    "Extract the Vehicle Identification Number (VIN) from this image. "
    "A VIN is a 17-character alphanumeric code. "
    "Respond with ONLY the VIN, with no extra text or formatting."
)

MULTI_VIN_PROMPT = (
    "Analyze these video frames and identify all Vehicle Identification "
    "Numbers (VINs).\n"
    "- Return ONLY a raw JSON array of strings containing the unique VINs "
    "detected.\n"
    "- A VIN is typically 17 alphanumeric characters, but include any clear "
    "alphanumeric ID string between 10 and 20 characters that looks like a "
    "vehicle identifier.\n"
    "- Do not include any markdown formatting (no ```json).\n"
    "- If none are found, return []."
)


class RecognitionClient(Protocol):
    """Interface for a remote image-to-text model."""

    async def recognize(  # noqa: PLR0913
        self,
        *,
        model: str,
        reasoning_effort: str | None,
        store: bool,
        image_data_urls: list[str],
        prompt: str,
    ) -> str:
        """Return the model's free-form text answer."""


@dataclass
class RecognitionService:
    """Sends images and a prompt to the configured recognition client.

    No retries and no caching: a failure surfaces to the caller as
    RecognitionUnavailable, a blank answer as RecognitionEmpty.
    """

    client: RecognitionClient
    model: str
    video_model: str
    reasoning_effort: str | None
    store: bool

    async def recognize(self, images: list[bytes], prompt: str) -> str:
        """Return raw recognition text for one or more images."""
        if not images:
            raise RecognitionEmpty("No images provided for recognition")
        model = self.model if len(images) == 1 else self.video_model
        text = await self.client.recognize(
            model=model,
            reasoning_effort=self.reasoning_effort,
            store=self.store,
            image_data_urls=[_to_data_url(image) for image in images],
            prompt=prompt,
        )
        if not text or not text.strip():
            raise RecognitionEmpty("Recognition returned no text")
        return text


def _to_data_url(image_bytes: bytes) -> str:
    """Convert bytes to a base64 data URL for image input."""
    mime_type = detect_mime_type(image_bytes)
    encoded = base64.b64encode(image_bytes).decode("utf-8")
    return f"data:{mime_type};base64,{encoded}"
