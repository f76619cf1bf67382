"""Recuperação tolerante do JSON devolvido pelo classificador.

Ordem de tentativas:
1. JSON direto
2. sem cercas markdown (```json ... ```)
3. primeiro objeto `{...}` balanceado dentro do texto
"""

from __future__ import annotations

import json
import re
from typing import Any

from skiddly.domain.errors import ClassificationUnavailableError

_FENCE_PATTERN = re.compile(r"```(?:json)?\s*(.*?)\s*```", re.DOTALL | re.IGNORECASE)


def _load_object(text: str) -> dict[str, Any] | None:
    try:
        data = json.loads(text)
    except json.JSONDecodeError:
        return None
    return data if isinstance(data, dict) else None


def _strip_fences(text: str) -> str | None:
    match = _FENCE_PATTERN.search(text)
    return match.group(1) if match else None


def _first_balanced_object(text: str) -> str | None:
    """Extrai o primeiro objeto com chaves balanceadas, ignorando strings."""
    start = text.find("{")
    while start != -1:
        depth = 0
        in_string = False
        escaped = False
        for index in range(start, len(text)):
            char = text[index]
            if in_string:
                if escaped:
                    escaped = False
                elif char == "\\":
                    escaped = True
                elif char == '"':
                    in_string = False
                continue
            if char == '"':
                in_string = True
            elif char == "{":
                depth += 1
            elif char == "}":
                depth -= 1
                if depth == 0:
                    return text[start : index + 1]
        start = text.find("{", start + 1)
    return None


def parse_classification_payload(raw: str | None) -> dict[str, Any]:
    """Converte a resposta textual em dict.

    Raises:
        ClassificationUnavailableError: nenhuma estratégia produziu um objeto
    """
    text = (raw or "").strip()
    if not text:
        msg = "resposta vazia do classificador"
        raise ClassificationUnavailableError(msg)

    data = _load_object(text)
    if data is not None:
        return data

    fenced = _strip_fences(text)
    if fenced is not None:
        data = _load_object(fenced)
        if data is not None:
            return data

    candidate = _first_balanced_object(text)
    if candidate is not None:
        data = _load_object(candidate)
        if data is not None:
            return data

    msg = "resposta do classificador não contém JSON válido"
    raise ClassificationUnavailableError(msg)
