from __future__ import annotations

import logging
import os

from skiddly.observability.logging import get_logger

logger: logging.Logger = get_logger(__name__)


class EnvSecretProvider:
    """Secrets via variáveis de ambiente (desenvolvimento, testes e CI)."""

    def get_secret(self, name: str, version: str = "latest") -> str:
        """Lê secret do ambiente; `version` é ignorado."""
        value = os.getenv(name)
        if not value:
            logger.warning(
                "Secret não encontrado no ambiente",
                extra={"secret_name": name, "provider": "env"},
            )
            raise RuntimeError(f"Secret {name} não encontrado no ambiente")
        return value

    def secret_exists(self, name: str) -> bool:
        return os.getenv(name) is not None
