"""Testes unitários para infra/http.py.

Valida retry com backoff, erros definitivos e factory a partir de Settings.
"""

from __future__ import annotations

from unittest.mock import AsyncMock, MagicMock, patch

import httpx
import pytest

from skiddly.config.settings import Settings
from skiddly.infra.http import (
    HttpClient,
    HttpClientConfig,
    HttpError,
    _calculate_backoff,
    _is_retryable_status,
    _sanitize_url,
    create_http_client,
)


def _response(status_code: int) -> MagicMock:
    response = MagicMock(spec=httpx.Response)
    response.status_code = status_code
    response.is_success = 200 <= status_code < 300
    return response


def _client_with(config: HttpClientConfig, **request_kwargs: object) -> tuple[HttpClient, AsyncMock]:
    client = HttpClient(config)
    mock_httpx_client = AsyncMock()
    mock_httpx_client.is_closed = False
    for name, value in request_kwargs.items():
        setattr(mock_httpx_client.request, name, value)
    client._client = mock_httpx_client
    return client, mock_httpx_client


class TestHelpers:
    """Testes dos helpers de módulo."""

    def test_default_config(self) -> None:
        config = HttpClientConfig()
        assert config.timeout_seconds == 30.0
        assert config.max_retries == 3
        assert config.verify_ssl is True

    def test_sanitize_url_masks_credentials(self) -> None:
        """Deve mascarar api_key e signature na query string."""
        url = "https://storage.example.com/rec.wav?api_key=abc123&sig=xyz&part=1"
        sanitized = _sanitize_url(url)
        assert "abc123" not in sanitized
        assert "xyz" not in sanitized
        assert "api_key=***" in sanitized
        assert "part=1" in sanitized

    def test_sanitize_url_preserves_clean_url(self) -> None:
        url = "https://api.vapi.ai/call"
        assert _sanitize_url(url) == url

    @pytest.mark.parametrize("status", [429, 500, 502, 503, 599])
    def test_retryable_status(self, status: int) -> None:
        assert _is_retryable_status(status) is True

    @pytest.mark.parametrize("status", [400, 401, 404, 422])
    def test_definitive_status(self, status: int) -> None:
        assert _is_retryable_status(status) is False

    def test_backoff_is_exponential_and_capped(self) -> None:
        assert _calculate_backoff(0, 2.0, 30.0) == 2.0
        assert _calculate_backoff(2, 2.0, 30.0) == 8.0
        assert _calculate_backoff(6, 2.0, 30.0) == 30.0


class TestHttpClientRequests:
    """Testes assíncronos para HttpClient."""

    @pytest.mark.asyncio
    async def test_post_sends_json(self) -> None:
        """POST deve repassar o payload como JSON."""
        client, mock_httpx = _client_with(HttpClientConfig(), return_value=_response(201))

        response = await client.post("https://api.vapi.ai/call", json={"assistantId": "a"})

        assert response.status_code == 201
        mock_httpx.request.assert_called_once_with(
            "POST", "https://api.vapi.ai/call", json={"assistantId": "a"}
        )

    @pytest.mark.asyncio
    async def test_retries_5xx_until_success(self) -> None:
        """Deve fazer retry em 5xx e devolver a primeira resposta de sucesso."""
        client, mock_httpx = _client_with(
            HttpClientConfig(max_retries=2),
            side_effect=[_response(500), _response(503), _response(200)],
        )

        with patch("asyncio.sleep", new_callable=AsyncMock) as sleep:
            response = await client.get("https://example.com/recording.wav")

        assert response.status_code == 200
        assert mock_httpx.request.call_count == 3
        assert sleep.await_count == 2

    @pytest.mark.asyncio
    async def test_4xx_is_not_retried(self) -> None:
        client, mock_httpx = _client_with(
            HttpClientConfig(max_retries=3), return_value=_response(401)
        )

        with pytest.raises(HttpError) as exc_info:
            await client.post("https://api.vapi.ai/call", json={})

        assert exc_info.value.status_code == 401
        assert exc_info.value.is_retryable is False
        assert mock_httpx.request.call_count == 1

    @pytest.mark.asyncio
    async def test_exhausted_retries_raise_last_error(self) -> None:
        client, mock_httpx = _client_with(
            HttpClientConfig(max_retries=1), return_value=_response(429)
        )

        with (
            patch("asyncio.sleep", new_callable=AsyncMock),
            pytest.raises(HttpError) as exc_info,
        ):
            await client.get("https://api.vapi.ai/call/1")

        assert exc_info.value.status_code == 429
        assert exc_info.value.is_retryable is True
        assert mock_httpx.request.call_count == 2

    @pytest.mark.asyncio
    async def test_retry_after_header_overrides_backoff(self) -> None:
        """429 com Retry-After espera o tempo pedido (limitado ao máximo)."""
        throttled = _response(429)
        throttled.headers = {"retry-after": "7"}
        client, _ = _client_with(
            HttpClientConfig(max_retries=1, backoff_max_seconds=30.0),
            side_effect=[throttled, _response(200)],
        )

        with patch("asyncio.sleep", new_callable=AsyncMock) as sleep:
            response = await client.post("https://api.vapi.ai/call", json={})

        assert response.status_code == 200
        sleep.assert_awaited_once_with(7.0)

    @pytest.mark.asyncio
    async def test_timeout_is_retried(self) -> None:
        """Timeout vira HttpError retentável."""
        client, mock_httpx = _client_with(
            HttpClientConfig(max_retries=1),
            side_effect=[httpx.ReadTimeout("slow"), _response(200)],
        )

        with patch("asyncio.sleep", new_callable=AsyncMock):
            response = await client.get("https://api.vapi.ai/call/1")

        assert response.status_code == 200
        assert mock_httpx.request.call_count == 2

    @pytest.mark.asyncio
    async def test_unexpected_exception_is_wrapped(self) -> None:
        client, _ = _client_with(HttpClientConfig(max_retries=3), side_effect=RuntimeError("x"))

        with pytest.raises(HttpError, match="RuntimeError"):
            await client.get("https://api.vapi.ai/call/1")

    @pytest.mark.asyncio
    async def test_close_releases_client(self) -> None:
        client, mock_httpx = _client_with(HttpClientConfig())

        await client.close()

        mock_httpx.aclose.assert_called_once()
        assert client._client is None


class TestCreateHttpClient:
    """Testes para create_http_client."""

    def test_uses_settings_values(self) -> None:
        settings = Settings(
            http_timeout_seconds=12,
            http_max_retries=5,
            http_retry_backoff_seconds=3,
        )

        client = create_http_client(settings)

        assert client._config.timeout_seconds == 12.0
        assert client._config.max_retries == 5
        assert client._config.backoff_base_seconds == 3.0

    def test_user_agent_and_extra_headers(self) -> None:
        settings = Settings(service_name="skiddly-test", version="9.9.9")

        client = create_http_client(settings, headers={"X-Extra": "1"})

        assert client._config.default_headers["User-Agent"] == "skiddly-test/9.9.9"
        assert client._config.default_headers["X-Extra"] == "1"
