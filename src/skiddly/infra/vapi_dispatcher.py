"""Disparo de ligações via VAPI (POST /call) e dispatcher em memória.

VapiCallDispatcher:
- Usa HttpClient (retry/backoff em 429/5xx)
- Envia caseId em metadata para correlacionar o end-of-call-report
- Nunca loga telefone completo nem API key
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any

from skiddly.domain.errors import CallDispatchError
from skiddly.domain.protocols.outreach import CallDispatcherProtocol
from skiddly.infra.http import HttpClient, HttpError
from skiddly.observability.logging import get_logger

logger: logging.Logger = get_logger(__name__)


def _mask_phone(phone_number: str) -> str:
    return f"***{phone_number[-4:]}" if len(phone_number) > 4 else "***"


class VapiCallDispatcher(CallDispatcherProtocol):
    """Cliente de disparo de ligações outbound do VAPI."""

    def __init__(
        self,
        http_client: HttpClient,
        *,
        api_key: str,
        phone_number_id: str,
        base_url: str,
        default_assistant_id: str | None = None,
    ) -> None:
        self._http = http_client
        self._api_key = api_key
        self._phone_number_id = phone_number_id
        self._base_url = base_url.rstrip("/")
        self._default_assistant_id = default_assistant_id

    def build_payload(
        self,
        case_id: str,
        phone_number: str,
        agent_id: str | None,
        *,
        system_prompt: str | None = None,
        variables: Mapping[str, str] | None = None,
    ) -> dict[str, Any]:
        """Monta o corpo do POST /call."""
        assistant_id = agent_id or self._default_assistant_id
        if not assistant_id:
            msg = "Nenhum assistente configurado para o disparo"
            raise CallDispatchError(msg)

        payload: dict[str, Any] = {
            "assistantId": assistant_id,
            "phoneNumberId": self._phone_number_id,
            "customer": {"number": phone_number},
            "metadata": {"caseId": case_id},
        }
        overrides: dict[str, Any] = {}
        if variables:
            overrides["variableValues"] = dict(variables)
        if system_prompt:
            overrides["model"] = {
                "messages": [{"role": "system", "content": system_prompt}],
            }
        if overrides:
            payload["assistantOverrides"] = overrides
        return payload

    async def dispatch_call(
        self,
        case_id: str,
        phone_number: str,
        agent_id: str | None,
        *,
        system_prompt: str | None = None,
        variables: Mapping[str, str] | None = None,
    ) -> str:
        payload = self.build_payload(
            case_id,
            phone_number,
            agent_id,
            system_prompt=system_prompt,
            variables=variables,
        )
        try:
            response = await self._http.post(
                f"{self._base_url}/call",
                json=payload,
                headers={"Authorization": f"Bearer {self._api_key}"},
            )
        except HttpError as e:
            logger.error(
                "vapi_dispatch_failed",
                extra={
                    "case_id": case_id,
                    "status_code": e.status_code,
                    "phone": _mask_phone(phone_number),
                },
            )
            raise CallDispatchError(f"VAPI rejected call: {e}", status_code=e.status_code) from e

        try:
            provider_call_id = response.json().get("id")
        except ValueError as e:
            raise CallDispatchError("VAPI response is not JSON") from e
        if not provider_call_id:
            msg = "VAPI response without call id"
            raise CallDispatchError(msg)

        logger.info(
            "vapi_call_created",
            extra={"case_id": case_id, "provider_call_id": provider_call_id},
        )
        return str(provider_call_id)


@dataclass(slots=True)
class DispatchRecord:
    """Disparo registrado pelo dispatcher em memória."""

    provider_call_id: str
    case_id: str
    phone_number: str
    agent_id: str | None
    system_prompt: str | None = None
    variables: dict[str, str] = field(default_factory=dict)


class InMemoryCallDispatcher(CallDispatcherProtocol):
    """Dispatcher de desenvolvimento: registra disparos sem ligar.

    `fail_with` força CallDispatchError no próximo disparo.
    """

    def __init__(self) -> None:
        self.dispatched: list[DispatchRecord] = []
        self.fail_with: CallDispatchError | None = None

    async def dispatch_call(
        self,
        case_id: str,
        phone_number: str,
        agent_id: str | None,
        *,
        system_prompt: str | None = None,
        variables: Mapping[str, str] | None = None,
    ) -> str:
        if self.fail_with is not None:
            error, self.fail_with = self.fail_with, None
            raise error
        record = DispatchRecord(
            provider_call_id=f"mem-call-{len(self.dispatched) + 1}",
            case_id=case_id,
            phone_number=phone_number,
            agent_id=agent_id,
            system_prompt=system_prompt,
            variables=dict(variables or {}),
        )
        self.dispatched.append(record)
        logger.info(
            "memory_call_dispatched",
            extra={"case_id": case_id, "provider_call_id": record.provider_call_id},
        )
        return record.provider_call_id
