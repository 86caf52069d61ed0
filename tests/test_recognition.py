"""Tests for the recognition gateway and its OpenAI client."""

import asyncio

import httpx
import pytest
from openai import APIConnectionError

from vin_audit.adapters.openai_recognition_client import OpenAIRecognitionClient
from vin_audit.domain.errors import RecognitionEmpty, RecognitionUnavailable
from vin_audit.services.recognition import (
    SINGLE_VIN_PROMPT,
    RecognitionService,
    _to_data_url,
)
from tests.conftest import VALID_VIN, FakeRecognitionClient


def _service(client: FakeRecognitionClient) -> RecognitionService:
    return RecognitionService(
        client=client,
        model="gpt-5.2",
        video_model="gpt-5.2-video",
        reasoning_effort="low",
        store=False,
    )


def test_recognize_returns_raw_text() -> None:
    client = FakeRecognitionClient(answers=[f" {VALID_VIN}\n"])

    text = asyncio.run(_service(client).recognize([b"\xff\xd8\xffimg"], "Read"))

    assert text == f" {VALID_VIN}\n"
    assert client.calls == [{"model": "gpt-5.2", "images": 1, "prompt": "Read"}]


def test_recognize_uses_video_model_for_frame_batches() -> None:
    client = FakeRecognitionClient(answers=["[]"])

    asyncio.run(_service(client).recognize([b"a", b"b", b"c"], "Frames"))

    assert client.calls[0]["model"] == "gpt-5.2-video"
    assert client.calls[0]["images"] == 3


def test_recognize_blank_answer_is_empty() -> None:
    client = FakeRecognitionClient(answers=["   "])

    with pytest.raises(RecognitionEmpty):
        asyncio.run(_service(client).recognize([b"img"], "Read"))


def test_recognize_without_images_is_empty() -> None:
    client = FakeRecognitionClient()

    with pytest.raises(RecognitionEmpty):
        asyncio.run(_service(client).recognize([], "Read"))
    assert client.calls == []


def test_to_data_url_uses_png_header() -> None:
    data_url = _to_data_url(b"\x89PNG\r\n\x1a\nrest")

    assert data_url.startswith("data:image/png;base64,")


def test_to_data_url_defaults_to_jpeg() -> None:
    assert _to_data_url(b"unknown").startswith("data:image/jpeg;base64,")


class _FakeResponses:
    def __init__(self, error: Exception | None = None) -> None:
        self.error = error
        self.last_payload: dict[str, object] | None = None

    async def create(self, **kwargs):  # type: ignore[no-untyped-def]
        self.last_payload = kwargs
        if self.error is not None:
            raise self.error
        return type("Resp", (), {"output_text": VALID_VIN})()


class _FakeOpenAI:
    def __init__(self, error: Exception | None = None) -> None:
        self.responses = _FakeResponses(error)


def test_openai_recognition_client_sends_images_and_prompt() -> None:
    fake = _FakeOpenAI()
    client = OpenAIRecognitionClient(client=fake)

    result = asyncio.run(
        client.recognize(
            model="gpt-5.2",
            reasoning_effort="high",
            store=False,
            image_data_urls=["data:image/jpeg;base64,ZmFrZQ=="],
            prompt=SINGLE_VIN_PROMPT,
        )
    )

    assert result == VALID_VIN
    payload = fake.responses.last_payload
    assert payload is not None
    assert payload["reasoning"] == {"effort": "high"}
    content = payload["input"][0]["content"]  # type: ignore[index]
    assert content[0] == {"type": "input_text", "text": SINGLE_VIN_PROMPT}
    assert content[1]["type"] == "input_image"


def test_openai_recognition_client_maps_errors() -> None:
    request = httpx.Request("POST", "https://api.openai.com/v1/responses")
    client = OpenAIRecognitionClient(
        client=_FakeOpenAI(error=APIConnectionError(request=request))
    )

    with pytest.raises(RecognitionUnavailable):
        asyncio.run(
            client.recognize(
                model="gpt-5.2",
                reasoning_effort=None,
                store=False,
                image_data_urls=[],
                prompt="Read",
            )
        )
