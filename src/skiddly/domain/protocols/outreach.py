"""Portas de saída: provedor de voz, notificações e classificação."""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Mapping
from typing import Any

from skiddly.ai.contracts.classification import ClassificationRequest
from skiddly.domain.enums import FinalAction


class CallDispatcherProtocol(ABC):
    """Dispara ligações no provedor de voz."""

    @abstractmethod
    async def dispatch_call(
        self,
        case_id: str,
        phone_number: str,
        agent_id: str | None,
        *,
        system_prompt: str | None = None,
        variables: Mapping[str, str] | None = None,
    ) -> str:
        """Dispara a ligação e retorna o id do provedor.

        Raises:
            CallDispatchError: provedor rejeitou ou indisponível
        """


class NotifierProtocol(ABC):
    """Notifica efeitos colaterais (SMS de desconto, do-not-contact)."""

    @abstractmethod
    async def notify(
        self,
        case_id: str,
        action: FinalAction,
        context: Mapping[str, Any] | None = None,
    ) -> None:
        """Envia notificação da ação final."""


class ClassificationProviderProtocol(ABC):
    """Classificador externo de transcrições."""

    @abstractmethod
    async def classify(self, request: ClassificationRequest) -> dict[str, Any]:
        """Retorna o payload bruto do classificador.

        Raises:
            ClassificationUnavailableError: timeout, erro ou resposta ilegível
        """


class TranscriberProtocol(ABC):
    """Transcreve gravações de ligação."""

    @abstractmethod
    async def transcribe(self, recording_url: str) -> str:
        """Retorna o texto transcrito da gravação."""
