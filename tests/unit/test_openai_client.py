"""Testes dos adaptadores OpenAI com cliente mockado."""

from __future__ import annotations

from unittest.mock import AsyncMock, MagicMock

import httpx
import pytest
from openai import APITimeoutError

from skiddly.ai import prompts
from skiddly.ai.contracts.classification import ClassificationRequest
from skiddly.ai.openai_client import (
    OpenAIClassificationProvider,
    OpenAITranscriber,
    _recording_filename,
)
from skiddly.domain.enums import CallOutcome
from skiddly.domain.errors import ClassificationUnavailableError
from skiddly.infra.http import HttpError


def _request() -> ClassificationRequest:
    return ClassificationRequest(
        transcript="User: not interested, thanks",
        ended_reason="customer-ended-call",
        as_of="Wednesday, 2024-01-10 10:00 EST",
        timezone="America/New_York",
    )


def _openai_client(content: str | None = None, error: Exception | None = None) -> MagicMock:
    client = MagicMock()
    response = MagicMock()
    response.choices = [] if content is None else [MagicMock(message=MagicMock(content=content))]
    client.chat.completions.create = AsyncMock(return_value=response, side_effect=error)
    return client


class TestOpenAIClassificationProvider:
    """Testes para OpenAIClassificationProvider."""

    @pytest.mark.asyncio
    async def test_returns_parsed_payload(self) -> None:
        client = _openai_client('```json\n{"callOutcome": "not_interested"}\n```')
        provider = OpenAIClassificationProvider(client, model="gpt-test", temperature=0.0)

        result = await provider.classify(_request())

        assert result == {"callOutcome": "not_interested"}
        kwargs = client.chat.completions.create.await_args.kwargs
        assert kwargs["model"] == "gpt-test"
        assert kwargs["messages"][0]["role"] == "system"
        assert "customer-ended-call" in kwargs["messages"][1]["content"]

    def test_system_prompt_lists_every_outcome(self) -> None:
        prompt = prompts.get_call_analysis_prompt()

        for outcome in CallOutcome:
            assert f'"{outcome.value}"' in prompt
        assert set(prompts.OUTCOME_DESCRIPTIONS) == set(CallOutcome)

    @pytest.mark.asyncio
    async def test_timeout_becomes_unavailable(self) -> None:
        error = APITimeoutError(request=httpx.Request("POST", "https://api.openai.com/v1"))
        provider = OpenAIClassificationProvider(_openai_client(error=error))

        with pytest.raises(ClassificationUnavailableError):
            await provider.classify(_request())

    @pytest.mark.asyncio
    async def test_empty_choices(self) -> None:
        provider = OpenAIClassificationProvider(_openai_client(None))

        with pytest.raises(ClassificationUnavailableError, match="choices"):
            await provider.classify(_request())


class TestOpenAITranscriber:
    """Testes para OpenAITranscriber."""

    @pytest.mark.asyncio
    async def test_downloads_and_transcribes(self) -> None:
        http_client = MagicMock()
        http_client.get = AsyncMock(return_value=MagicMock(content=b"RIFF"))
        client = MagicMock()
        client.audio.transcriptions.create = AsyncMock(return_value=MagicMock(text="hello"))
        transcriber = OpenAITranscriber(http_client, client)

        text = await transcriber.transcribe("https://storage.vapi.ai/abc/rec.mp3?sig=1")

        assert text == "hello"
        kwargs = client.audio.transcriptions.create.await_args.kwargs
        assert kwargs["model"] == "whisper-1"
        assert kwargs["file"] == ("rec.mp3", b"RIFF")

    @pytest.mark.asyncio
    async def test_download_failure(self) -> None:
        http_client = MagicMock()
        http_client.get = AsyncMock(side_effect=HttpError("HTTP 404", status_code=404))
        transcriber = OpenAITranscriber(http_client, MagicMock())

        with pytest.raises(ClassificationUnavailableError):
            await transcriber.transcribe("https://storage.vapi.ai/abc/rec.mp3")

    def test_recording_filename_default(self) -> None:
        assert _recording_filename("https://storage.vapi.ai/abc/recording") == "recording.wav"
