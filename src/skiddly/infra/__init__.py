"""Camada de infraestrutura: adapters para serviços externos.

- Stores: InMemory*/Redis*/Firestore* (carrinho, caso, ligação), create_stores
- Provedor de voz: VapiCallDispatcher, InMemoryCallDispatcher
- Notificações: LoggingNotifier, WebhookNotifier
- HTTP: HttpClient

Infraestrutura não decide regra de negócio; logs estruturados sem PII.
"""

from skiddly.infra.http import HttpClient, HttpClientConfig, HttpError, create_http_client
from skiddly.infra.notifier import LoggingNotifier, WebhookNotifier
from skiddly.infra.store_factory import Stores, create_stores
from skiddly.infra.vapi_dispatcher import InMemoryCallDispatcher, VapiCallDispatcher

__all__ = [
    "HttpClient",
    "HttpClientConfig",
    "HttpError",
    "create_http_client",
    "LoggingNotifier",
    "WebhookNotifier",
    "Stores",
    "create_stores",
    "InMemoryCallDispatcher",
    "VapiCallDispatcher",
]
