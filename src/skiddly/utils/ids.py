"""Geradores de identificadores."""

from __future__ import annotations

import uuid
from datetime import UTC, datetime


def new_case_id() -> str:
    """Gera um case_id único."""
    return str(uuid.uuid4())


def new_call_id() -> str:
    """Gera um call_id interno único."""
    return str(uuid.uuid4())


def new_correlation_id(
    kind: str,
    identifier: str,
    sequence: int | None = None,
    now: datetime | None = None,
) -> str:
    """Correlation id legível: {kind}_{identifier}[_{seq}]_{timestamp}_{uuid8}."""
    moment = now or datetime.now(tz=UTC)
    parts = [kind, identifier]
    if sequence is not None:
        parts.append(str(sequence))
    parts.append(str(int(moment.timestamp() * 1000)))
    parts.append(uuid.uuid4().hex[:8])
    return "_".join(parts)
