"""Validação de assinatura do webhook VAPI (HMAC SHA-256 em hex)."""

from __future__ import annotations

import hashlib
import hmac
from collections.abc import Mapping

from skiddly.adapters.shopify.signature import SignatureResult


def verify_vapi_signature(
    raw_body: bytes,
    headers: Mapping[str, str],
    secret: str | None,
) -> SignatureResult:
    """Valida `X-Vapi-Signature`; aceita o prefixo opcional "sha256="."""

    if not secret:
        return SignatureResult(valid=True, skipped=True)

    signature = headers.get("x-vapi-signature")
    if not signature:
        return SignatureResult(valid=False, error="missing_signature")

    provided = signature.removeprefix("sha256=").strip()
    digest = hmac.new(secret.encode("utf-8"), raw_body, hashlib.sha256).hexdigest()

    if not hmac.compare_digest(digest, provided.lower()):
        return SignatureResult(valid=False, error="signature_mismatch")

    return SignatureResult(valid=True)
