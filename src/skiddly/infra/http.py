"""Cliente HTTP centralizado com retry, timeout e logging.

Usado nas chamadas externas (provedor de voz, webhook de notificação,
download de gravações), com:
- Retry com backoff exponencial em 429/5xx/timeouts
- Timeouts configuráveis
- Logging estruturado sem PII e sem credenciais na URL
"""

from __future__ import annotations

import asyncio
import logging
import re
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

import httpx

from skiddly.observability.logging import get_logger

if TYPE_CHECKING:
    from skiddly.config.settings import Settings

logger: logging.Logger = get_logger(__name__)

_CREDENTIAL_PATTERN = re.compile(r"(api_key|token|signature|sig)=[^&]+", re.IGNORECASE)


def _sanitize_url(url: str) -> str:
    """Remove credenciais da query string para logging seguro."""
    return _CREDENTIAL_PATTERN.sub(lambda m: f"{m.group(1)}=***", url)


@dataclass
class HttpClientConfig:
    """Configuração do cliente HTTP.

    Valores padrão são seguros e conservadores.
    """

    timeout_seconds: float = 30.0
    max_retries: int = 3
    backoff_base_seconds: float = 2.0
    backoff_max_seconds: float = 30.0
    default_headers: dict[str, str] = field(default_factory=dict)
    verify_ssl: bool = True


class HttpError(Exception):
    """Erro de requisição HTTP sem expor informações sensíveis."""

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        is_retryable: bool = False,
    ) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.is_retryable = is_retryable


def _is_retryable_status(status_code: int) -> bool:
    """Determina se status HTTP permite retry (429 ou 5xx)."""
    return status_code == 429 or 500 <= status_code < 600


def _calculate_backoff(attempt: int, base_seconds: float, max_seconds: float) -> float:
    """Calcula tempo de espera com backoff exponencial."""
    return min((2**attempt) * base_seconds, max_seconds)


def _retry_after_seconds(response: httpx.Response) -> float | None:
    """Lê Retry-After em segundos (VAPI e OpenAI mandam em 429)."""
    value = response.headers.get("retry-after")
    if not isinstance(value, str):
        return None
    try:
        seconds = float(value.strip())
    except ValueError:
        return None
    return seconds if seconds >= 0 else None


def _handle_transient_exception(
    exc: Exception,
    method: str,
    url: str,
    attempt: int,
) -> HttpError:
    """Converte timeout/conexão em HttpError retentável; o resto propaga."""
    if isinstance(exc, httpx.TimeoutException | httpx.ConnectError):
        logger.warning(
            "http_transient_error",
            extra={
                "method": method,
                "url": _sanitize_url(url),
                "attempt": attempt + 1,
                "error": type(exc).__name__,
            },
        )
        message = "Timeout" if isinstance(exc, httpx.TimeoutException) else "Erro de conexão"
        return HttpError(message, is_retryable=True)

    logger.error(
        "http_unexpected_error",
        extra={
            "method": method,
            "url": _sanitize_url(url),
            "error_type": type(exc).__name__,
        },
    )
    raise HttpError(f"Erro inesperado: {type(exc).__name__}") from exc


class HttpClient:
    """Cliente HTTP assíncrono com retry e logging.

    Uso típico:
        async with HttpClient(config) as client:
            response = await client.post(url, json=payload)
    """

    def __init__(self, config: HttpClientConfig | None = None) -> None:
        self._config = config or HttpClientConfig()
        self._client: httpx.AsyncClient | None = None

    async def _get_client(self) -> httpx.AsyncClient:
        """Retorna cliente httpx (lazy loading)."""
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                timeout=httpx.Timeout(self._config.timeout_seconds),
                headers=self._config.default_headers,
                verify=self._config.verify_ssl,
            )
        return self._client

    async def close(self) -> None:
        """Fecha o cliente e libera recursos."""
        if self._client and not self._client.is_closed:
            await self._client.aclose()
            self._client = None

    async def __aenter__(self) -> HttpClient:
        return self

    async def __aexit__(self, *args: Any) -> None:
        await self.close()

    def _process_response(
        self,
        response: httpx.Response,
        method: str,
        url: str,
    ) -> httpx.Response | None:
        """Retorna a resposta se sucesso, None se retentável; levanta se definitivo."""
        if response.is_success:
            logger.debug(
                "http_request_succeeded",
                extra={
                    "method": method,
                    "url": _sanitize_url(url),
                    "status_code": response.status_code,
                },
            )
            return response

        if not _is_retryable_status(response.status_code):
            logger.warning(
                "http_request_rejected",
                extra={
                    "method": method,
                    "url": _sanitize_url(url),
                    "status_code": response.status_code,
                },
            )
            raise HttpError(
                f"HTTP {response.status_code}",
                status_code=response.status_code,
                is_retryable=False,
            )
        return None

    async def _request(self, method: str, url: str, **kwargs: Any) -> httpx.Response:
        """Executa requisição com retry automático.

        Raises:
            HttpError: status definitivo ou todas as tentativas falharam
        """
        client = await self._get_client()
        cfg = self._config
        last_error: HttpError | None = None

        for attempt in range(cfg.max_retries + 1):
            retry_after: float | None = None
            try:
                response = await client.request(method, url, **kwargs)
                result = self._process_response(response, method, url)
                if result is not None:
                    return result
                retry_after = _retry_after_seconds(response)
                last_error = HttpError(
                    f"HTTP {response.status_code}",
                    status_code=response.status_code,
                    is_retryable=True,
                )
            except HttpError:
                raise
            except Exception as exc:
                last_error = _handle_transient_exception(exc, method, url, attempt)

            if attempt < cfg.max_retries:
                backoff = _calculate_backoff(
                    attempt, cfg.backoff_base_seconds, cfg.backoff_max_seconds
                )
                if retry_after is not None:
                    backoff = min(retry_after, cfg.backoff_max_seconds)
                logger.info(
                    "http_retry_backoff",
                    extra={"backoff_seconds": backoff, "next_attempt": attempt + 2},
                )
                await asyncio.sleep(backoff)

        logger.error(
            "http_retries_exhausted",
            extra={
                "method": method,
                "url": _sanitize_url(url),
                "total_attempts": cfg.max_retries + 1,
            },
        )
        raise last_error or HttpError("Falha após todos os retries")

    async def get(self, url: str, **kwargs: Any) -> httpx.Response:
        return await self._request("GET", url, **kwargs)

    async def post(
        self,
        url: str,
        json: dict[str, Any] | None = None,
        **kwargs: Any,
    ) -> httpx.Response:
        return await self._request("POST", url, json=json, **kwargs)


def create_http_client(
    settings: Settings,
    *,
    headers: dict[str, str] | None = None,
) -> HttpClient:
    """Factory para cliente HTTP configurado a partir de Settings."""
    default_headers = {"User-Agent": f"{settings.service_name}/{settings.version}"}
    default_headers.update(headers or {})
    config = HttpClientConfig(
        timeout_seconds=float(settings.http_timeout_seconds),
        max_retries=settings.http_max_retries,
        backoff_base_seconds=float(settings.http_retry_backoff_seconds),
        default_headers=default_headers,
    )
    logger.info(
        "http_client_created",
        extra={
            "timeout_seconds": config.timeout_seconds,
            "max_retries": config.max_retries,
        },
    )
    return HttpClient(config)
