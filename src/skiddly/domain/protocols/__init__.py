"""Re-exports dos Protocolos de domínio para uso por Application."""

from __future__ import annotations

from skiddly.domain.protocols.call_store import CallStoreProtocol
from skiddly.domain.protocols.cart_store import CartStoreProtocol
from skiddly.domain.protocols.case_store import CaseStoreProtocol
from skiddly.domain.protocols.outreach import (
    CallDispatcherProtocol,
    ClassificationProviderProtocol,
    NotifierProtocol,
    TranscriberProtocol,
)

__all__ = [
    "CartStoreProtocol",
    "CaseStoreProtocol",
    "CallStoreProtocol",
    "CallDispatcherProtocol",
    "NotifierProtocol",
    "ClassificationProviderProtocol",
    "TranscriberProtocol",
]
