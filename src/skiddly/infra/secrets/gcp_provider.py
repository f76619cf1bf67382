from __future__ import annotations

import logging
import os

from skiddly.observability.logging import get_logger

logger: logging.Logger = get_logger(__name__)


class SecretManagerProvider:
    """Provider para Google Cloud Secret Manager.

    Requer Application Default Credentials com permissão secretAccessor.
    """

    def __init__(self, project_id: str | None = None, client=None) -> None:
        self._project_id = project_id or os.getenv("GOOGLE_CLOUD_PROJECT")
        self._client = client

    def _get_client(self):
        """Retorna cliente do Secret Manager (lazy loading)."""
        if self._client is None:
            from google.cloud import secretmanager

            self._client = secretmanager.SecretManagerServiceClient()
        return self._client

    def _secret_path(self, name: str) -> str:
        if not self._project_id:
            raise RuntimeError(
                "project_id não configurado. "
                "Defina GOOGLE_CLOUD_PROJECT ou passe project_id ao construtor."
            )
        return f"projects/{self._project_id}/secrets/{name}"

    def get_secret(self, name: str, version: str = "latest") -> str:
        client = self._get_client()
        secret_path = f"{self._secret_path(name)}/versions/{version}"

        try:
            response = client.access_secret_version(name=secret_path)
        except Exception as e:  # noqa: BLE001
            logger.error(
                "Falha ao acessar Secret Manager",
                extra={"secret_name": name, "version": version, "error_type": type(e).__name__},
            )
            raise RuntimeError(
                f"Não foi possível acessar secret {name}: acesso negado ou não existe"
            ) from e

        logger.info(
            "Secret lido do Secret Manager",
            extra={"secret_name": name, "version": version, "provider": "secret_manager"},
        )
        return response.payload.data.decode("utf-8")

    def secret_exists(self, name: str) -> bool:
        from google.api_core import exceptions as gcp_exceptions

        client = self._get_client()
        try:
            client.get_secret(name=self._secret_path(name))
        except gcp_exceptions.NotFound:
            return False
        return True
