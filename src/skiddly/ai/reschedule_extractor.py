"""Extração determinística de pedidos de reagendamento na transcrição.

Complementa o classificador: só preenche campos que ele deixou vazios.
Considera apenas as falas do cliente quando a transcrição tem papéis.
"""

from __future__ import annotations

import re

from skiddly.domain.analysis import StructuredCallData

_SPEAKER_PATTERN = re.compile(r"^\s*(user|customer|cliente)\s*:\s*(.*)$", re.IGNORECASE)
_ROLE_PATTERN = re.compile(r"^\s*(ai|assistant|agent|bot|user|customer|cliente)\s*:", re.I)

_TRIGGER_PATTERN = re.compile(
    r"\b(call (?:me|back)|call again|reach me|try (?:me|again)|ring me|"
    r"reschedule|another time|better time|not a good time|later)\b",
    re.IGNORECASE,
)
_TIME_12H_PATTERN = re.compile(
    r"\b(1[0-2]|0?[1-9])(?::([0-5]\d))?\s*(a\.?m\.?|p\.?m\.?)(?![a-z])",
    re.IGNORECASE,
)
_TIME_24H_PATTERN = re.compile(r"\b([01]?\d|2[0-3]):([0-5]\d)\b")
_ISO_DATE_PATTERN = re.compile(r"\b(\d{4}-\d{2}-\d{2})\b")
_DAY_WORD_PATTERN = re.compile(
    r"\b(today|tomorrow|monday|tuesday|wednesday|thursday|friday|saturday|sunday)\b",
    re.IGNORECASE,
)
_IN_DAYS_PATTERN = re.compile(r"\bin (\d+) days?\b", re.IGNORECASE)
_TIMEZONE_PATTERN = re.compile(
    r"\b(EST|EDT|CST|CDT|MST|MDT|PST|PDT|IST|GMT|UTC|BST)\b|\b(my time)\b",
    re.IGNORECASE,
)
_RELATIVE_PATTERN = re.compile(
    r"\b(in (?:\d+|an?|one|two|three|half an) (?:minutes?|hours?|hour|days?)|"
    r"(?:tomorrow|this) (?:morning|afternoon|evening)|later today)\b",
    re.IGNORECASE,
)


def customer_utterances(transcript: str) -> str:
    """Retorna apenas as falas do cliente, ou o texto todo sem marcação de papéis."""
    lines = transcript.splitlines()
    if not any(_ROLE_PATTERN.match(line) for line in lines):
        return transcript
    spoken = []
    for line in lines:
        match = _SPEAKER_PATTERN.match(line)
        if match:
            spoken.append(match.group(2))
    return "\n".join(spoken)


def _format_12h(hour: str, minute: str | None, meridiem: str) -> str:
    suffix = "PM" if meridiem.lower().startswith("p") else "AM"
    return f"{int(hour)}:{minute or '00'} {suffix}"


def _extract_time(text: str) -> str | None:
    match = _TIME_12H_PATTERN.search(text)
    if match:
        return _format_12h(match.group(1), match.group(2), match.group(3))
    match = _TIME_24H_PATTERN.search(text)
    if match:
        return f"{int(match.group(1)):02d}:{match.group(2)}"
    return None


def _extract_date(text: str) -> str | None:
    match = _ISO_DATE_PATTERN.search(text)
    if match:
        return match.group(1)
    match = _IN_DAYS_PATTERN.search(text)
    if match:
        return f"in {match.group(1)} days"
    match = _DAY_WORD_PATTERN.search(text)
    if match:
        return match.group(1).lower()
    return None


def _extract_timezone(text: str) -> str | None:
    match = _TIMEZONE_PATTERN.search(text)
    if not match:
        return None
    return match.group(1).upper() if match.group(1) else "my time"


def extract_reschedule(transcript: str) -> StructuredCallData:
    """Extrai campos de reagendamento; vazio quando não há pedido explícito."""
    text = customer_utterances(transcript or "")
    if not _TRIGGER_PATTERN.search(text):
        return StructuredCallData()

    relative = _RELATIVE_PATTERN.search(text)
    relative_time = relative.group(1).lower() if relative else None
    reschedule_time = _extract_time(text)
    reschedule_date = None if relative_time and "tomorrow" in relative_time else _extract_date(text)

    if not (relative_time or reschedule_time or reschedule_date):
        return StructuredCallData()

    return StructuredCallData(
        reschedule_requested=True,
        reschedule_time=reschedule_time,
        reschedule_date=reschedule_date,
        reschedule_timezone=_extract_timezone(text),
        relative_time=relative_time,
    )
