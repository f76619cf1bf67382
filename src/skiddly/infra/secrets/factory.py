from __future__ import annotations

import logging

from skiddly.observability.logging import get_logger

from .env_provider import EnvSecretProvider
from .gcp_provider import SecretManagerProvider
from .protocol import SecretProvider

logger: logging.Logger = get_logger(__name__)


def create_secret_provider(backend: str = "env", project_id: str | None = None) -> SecretProvider:
    """Factory para criar o provider de secrets apropriado."""
    if backend == "env":
        logger.info("Usando EnvSecretProvider para secrets")
        return EnvSecretProvider()

    if backend == "secret_manager":
        logger.info("Usando SecretManagerProvider para secrets", extra={"project_id": project_id})
        return SecretManagerProvider(project_id=project_id)

    raise ValueError(f"Backend de secrets não reconhecido: {backend}")
