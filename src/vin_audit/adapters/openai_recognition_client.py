"""OpenAI Responses API client for VIN recognition."""

import logging
from dataclasses import dataclass

from openai import AsyncOpenAI, OpenAIError

from vin_audit.domain.errors import RecognitionUnavailable
from vin_audit.services.recognition import RecognitionClient

logger = logging.getLogger(__name__)


@dataclass
class OpenAIRecognitionClient(RecognitionClient):
    """Recognition client backed by OpenAI Responses API."""

    client: AsyncOpenAI

    @classmethod
    def create(cls, api_key: str) -> "OpenAIRecognitionClient":
        """Create an OpenAI recognition client with SDK retries disabled."""
        return cls(client=AsyncOpenAI(api_key=api_key, max_retries=0))

    async def recognize(  # noqa: PLR0913
        self,
        *,
        model: str,
        reasoning_effort: str | None,
        store: bool,
        image_data_urls: list[str],
        prompt: str,
    ) -> str:
        """Call OpenAI Responses API and return the plain output text."""
        content: list[dict[str, str]] = [{"type": "input_text", "text": prompt}]
        content.extend(
            {"type": "input_image", "image_url": image_url}
            for image_url in image_data_urls
        )
        request_payload: dict[str, object] = {
            "model": model,
            "input": [{"role": "user", "content": content}],
            "store": store,
        }
        if reasoning_effort:
            request_payload["reasoning"] = {"effort": reasoning_effort}

        try:
            response = await self.client.responses.create(**request_payload)
        except OpenAIError as exc:
            logger.warning("OpenAI recognition call failed", extra={"model": model})
            raise RecognitionUnavailable(str(exc)) from exc
        return response.output_text or ""

    async def close(self) -> None:
        """Close the underlying HTTP session."""
        await self.client.close()
