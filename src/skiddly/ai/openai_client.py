"""Adaptadores OpenAI: classificação de ligações e transcrição de gravações.

Erros da API viram ClassificationUnavailableError; o fallback determinístico
fica no TranscriptAnalyzer, não aqui.
"""

from __future__ import annotations

import logging
from typing import Any
from urllib.parse import urlparse

from openai import APIError, APITimeoutError, AsyncOpenAI

from skiddly.ai import prompts
from skiddly.ai.classification_parser import parse_classification_payload
from skiddly.ai.contracts.classification import ClassificationRequest
from skiddly.domain.errors import ClassificationUnavailableError
from skiddly.domain.protocols.outreach import (
    ClassificationProviderProtocol,
    TranscriberProtocol,
)
from skiddly.infra.http import HttpClient, HttpError
from skiddly.observability.logging import get_logger

logger: logging.Logger = get_logger(__name__)


class OpenAIClassificationProvider(ClassificationProviderProtocol):
    """Classificador de transcrições via chat completions."""

    def __init__(
        self,
        client: AsyncOpenAI | None = None,
        *,
        api_key: str | None = None,
        model: str = "gpt-4o-mini",
        timeout_seconds: float = 20.0,
        temperature: float = 0.1,
    ) -> None:
        self._client = client or AsyncOpenAI(api_key=api_key)
        self._model = model
        self._timeout = timeout_seconds
        self._temperature = temperature

    async def classify(self, request: ClassificationRequest) -> dict[str, Any]:
        try:
            response = await self._client.chat.completions.create(
                model=self._model,
                messages=[
                    {"role": "system", "content": prompts.get_call_analysis_prompt()},
                    {"role": "user", "content": prompts.format_call_analysis_input(request)},
                ],
                temperature=self._temperature,
                max_tokens=1000,
                timeout=self._timeout,
            )
        except (APIError, APITimeoutError) as e:
            logger.warning(
                "call_classification_error",
                extra={"error_type": type(e).__name__},
            )
            raise ClassificationUnavailableError(type(e).__name__) from e

        if not response.choices:
            msg = "classificador retornou resposta sem choices"
            raise ClassificationUnavailableError(msg)
        content = response.choices[0].message.content
        return parse_classification_payload(content)


def _recording_filename(recording_url: str) -> str:
    path = urlparse(recording_url).path
    name = path.rsplit("/", 1)[-1]
    return name if "." in name else "recording.wav"


class OpenAITranscriber(TranscriberProtocol):
    """Baixa a gravação e transcreve com Whisper."""

    def __init__(
        self,
        http_client: HttpClient,
        client: AsyncOpenAI | None = None,
        *,
        api_key: str | None = None,
        model: str = "whisper-1",
    ) -> None:
        self._http = http_client
        self._client = client or AsyncOpenAI(api_key=api_key)
        self._model = model

    async def transcribe(self, recording_url: str) -> str:
        try:
            response = await self._http.get(recording_url)
        except HttpError as e:
            msg = f"falha ao baixar gravação: {e}"
            raise ClassificationUnavailableError(msg) from e

        try:
            transcription = await self._client.audio.transcriptions.create(
                model=self._model,
                file=(_recording_filename(recording_url), response.content),
            )
        except (APIError, APITimeoutError) as e:
            logger.warning(
                "recording_transcription_error",
                extra={"error_type": type(e).__name__},
            )
            raise ClassificationUnavailableError(type(e).__name__) from e

        text = getattr(transcription, "text", None) or ""
        logger.info("recording_transcribed", extra={"chars": len(text)})
        return text
