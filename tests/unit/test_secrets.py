"""Testes unitários para infra/secrets.

Valida providers de secrets e a factory.
"""

from __future__ import annotations

import os
from unittest.mock import MagicMock, patch

import pytest
from google.api_core import exceptions as gcp_exceptions

from skiddly.infra.secrets import (
    EnvSecretProvider,
    SecretManagerProvider,
    create_secret_provider,
)


class TestEnvSecretProvider:
    """Testes para EnvSecretProvider."""

    def test_reads_environment(self) -> None:
        with patch.dict(os.environ, {"VAPI_API_KEY": "key-123"}):
            assert EnvSecretProvider().get_secret("VAPI_API_KEY") == "key-123"

    def test_missing_secret_raises(self) -> None:
        """Deve levantar RuntimeError se a env var não existe."""
        with (
            patch.dict(os.environ, {}, clear=True),
            pytest.raises(RuntimeError, match="não encontrado"),
        ):
            EnvSecretProvider().get_secret("SHOPIFY_API_SECRET")

    def test_secret_exists(self) -> None:
        with patch.dict(os.environ, {"PRESENT": "1"}, clear=True):
            provider = EnvSecretProvider()
            assert provider.secret_exists("PRESENT") is True
            assert provider.secret_exists("ABSENT") is False


class TestSecretManagerProvider:
    """Testes para SecretManagerProvider com cliente mockado."""

    def test_project_from_environment(self) -> None:
        with patch.dict(os.environ, {"GOOGLE_CLOUD_PROJECT": "skiddly-prod"}):
            assert SecretManagerProvider()._project_id == "skiddly-prod"

    def test_get_secret_uses_version_path(self) -> None:
        client = MagicMock()
        client.access_secret_version.return_value.payload.data = b"whsec"
        provider = SecretManagerProvider(project_id="proj", client=client)

        assert provider.get_secret("VAPI_WEBHOOK_SECRET", "3") == "whsec"
        client.access_secret_version.assert_called_once_with(
            name="projects/proj/secrets/VAPI_WEBHOOK_SECRET/versions/3"
        )

    def test_get_secret_failure_is_runtime_error(self) -> None:
        client = MagicMock()
        client.access_secret_version.side_effect = gcp_exceptions.PermissionDenied("denied")
        provider = SecretManagerProvider(project_id="proj", client=client)

        with pytest.raises(RuntimeError, match="OPENAI_API_KEY"):
            provider.get_secret("OPENAI_API_KEY")

    def test_missing_project_raises(self) -> None:
        with patch.dict(os.environ, {}, clear=True):
            provider = SecretManagerProvider(client=MagicMock())
            with pytest.raises(RuntimeError, match="project_id"):
                provider.get_secret("ANY")

    def test_secret_exists(self) -> None:
        client = MagicMock()
        provider = SecretManagerProvider(project_id="proj", client=client)

        assert provider.secret_exists("INTERNAL_TASK_TOKEN") is True

        client.get_secret.side_effect = gcp_exceptions.NotFound("missing")
        assert provider.secret_exists("INTERNAL_TASK_TOKEN") is False


class TestCreateSecretProvider:
    def test_env_backend_is_default(self) -> None:
        assert isinstance(create_secret_provider(), EnvSecretProvider)

    def test_secret_manager_backend(self) -> None:
        provider = create_secret_provider(backend="secret_manager", project_id="proj")
        assert isinstance(provider, SecretManagerProvider)

    def test_unknown_backend(self) -> None:
        with pytest.raises(ValueError, match="não reconhecido"):
            create_secret_provider(backend="vault")
