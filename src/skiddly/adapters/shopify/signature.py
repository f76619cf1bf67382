"""Validação de assinatura do webhook Shopify (HMAC SHA-256 em base64)."""

from __future__ import annotations

import base64
import hashlib
import hmac
from collections.abc import Mapping
from dataclasses import dataclass


@dataclass(slots=True)
class SignatureResult:
    """Resultado da validação de assinatura."""

    valid: bool
    skipped: bool = False
    error: str | None = None


def verify_shopify_signature(
    raw_body: bytes,
    headers: Mapping[str, str],
    secret: str | None,
) -> SignatureResult:
    """Valida `X-Shopify-Hmac-Sha256` contra o corpo bruto.

    Se o secret estiver ausente, a validação é ignorada (skipped).
    """

    if not secret:
        return SignatureResult(valid=True, skipped=True)

    signature = headers.get("x-shopify-hmac-sha256")
    if not signature:
        return SignatureResult(valid=False, error="missing_signature")

    digest = hmac.new(secret.encode("utf-8"), raw_body, hashlib.sha256).digest()
    expected = base64.b64encode(digest).decode("ascii")

    if not hmac.compare_digest(expected, signature.strip()):
        return SignatureResult(valid=False, error="signature_mismatch")

    return SignatureResult(valid=True)
