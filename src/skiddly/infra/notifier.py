"""Notificação de ações finais (SMS de desconto, do-not-contact)."""

from __future__ import annotations

import logging
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any

from skiddly.domain.enums import FinalAction
from skiddly.domain.protocols.outreach import NotifierProtocol
from skiddly.infra.http import HttpClient
from skiddly.observability.logging import get_logger

logger: logging.Logger = get_logger(__name__)


@dataclass(slots=True)
class Notification:
    case_id: str
    action: FinalAction
    context: dict[str, Any] = field(default_factory=dict)


class LoggingNotifier(NotifierProtocol):
    """Registra notificações em log e em memória (dev/testes)."""

    def __init__(self) -> None:
        self.sent: list[Notification] = []

    async def notify(
        self,
        case_id: str,
        action: FinalAction,
        context: Mapping[str, Any] | None = None,
    ) -> None:
        notification = Notification(case_id, action, dict(context or {}))
        self.sent.append(notification)
        logger.info(
            "final_action_notified",
            extra={
                "case_id": case_id,
                "final_action": action.value,
                "correlation_id": notification.context.get("correlation_id"),
            },
        )


class WebhookNotifier(NotifierProtocol):
    """Envia a ação final como JSON para um webhook externo.

    HttpError propaga; o orquestrador loga e segue.
    """

    def __init__(self, http_client: HttpClient, url: str) -> None:
        self._http = http_client
        self._url = url

    async def notify(
        self,
        case_id: str,
        action: FinalAction,
        context: Mapping[str, Any] | None = None,
    ) -> None:
        payload = {"case_id": case_id, "action": action.value, "context": dict(context or {})}
        await self._http.post(self._url, json=payload)
        logger.info(
            "final_action_webhook_sent",
            extra={"case_id": case_id, "final_action": action.value},
        )
