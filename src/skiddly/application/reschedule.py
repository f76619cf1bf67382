"""Resolução de pedidos de reagendamento em instantes absolutos.

Entrada: campos estruturados extraídos da ligação (hora, data, fuso e/ou
expressão relativa). Saída: datetime aware em UTC, ou None quando não há
como resolver ou o horário já passou.
"""

from __future__ import annotations

import re
from datetime import UTC, date, datetime, time, timedelta
from zoneinfo import ZoneInfo

from skiddly.domain.analysis import StructuredCallData

TIMEZONE_HINTS: dict[str, str] = {
    "EST": "America/New_York",
    "EDT": "America/New_York",
    "CST": "America/Chicago",
    "CDT": "America/Chicago",
    "MST": "America/Denver",
    "MDT": "America/Denver",
    "PST": "America/Los_Angeles",
    "PDT": "America/Los_Angeles",
    "IST": "Asia/Kolkata",
    "GMT": "Europe/London",
    "BST": "Europe/London",
    "UTC": "UTC",
}

PART_OF_DAY: dict[str, time] = {
    "morning": time(9, 0),
    "afternoon": time(14, 0),
    "evening": time(18, 0),
}

_WEEKDAYS = ("monday", "tuesday", "wednesday", "thursday", "friday", "saturday", "sunday")
_WORD_NUMBERS = {"a": 1, "an": 1, "one": 1, "two": 2, "three": 3}

_RELATIVE_DELTA = re.compile(
    r"^in (\d+|an?|one|two|three|half an) (minute|hour|day)s?$", re.IGNORECASE
)
_PART_OF_DAY = re.compile(r"^(tomorrow|this) (morning|afternoon|evening)$", re.IGNORECASE)
_TIME_12H = re.compile(r"^(\d{1,2})(?::(\d{2}))?\s*(am|pm|a\.m\.|p\.m\.)$", re.IGNORECASE)
_TIME_24H = re.compile(r"^(\d{1,2}):(\d{2})$")
_IN_DAYS = re.compile(r"^in (\d+) days?$", re.IGNORECASE)

LATER_TODAY_DELAY = timedelta(hours=2)


def timezone_from_phone(phone: str | None) -> str | None:
    """Fuso provável pelo código do país (+1 → New York, +91 → Kolkata)."""
    if not phone:
        return None
    digits = re.sub(r"\D", "", phone)
    if phone.strip().startswith("+1") and len(digits) == 11:
        return "America/New_York"
    if phone.strip().startswith("+91") and len(digits) == 12:
        return "Asia/Kolkata"
    return None


def resolve_timezone(hint: str | None, default_timezone: str, phone: str | None = None) -> str:
    """Converte a dica do cliente em nome IANA."""
    if hint:
        normalized = hint.strip()
        if normalized.upper() in TIMEZONE_HINTS:
            return TIMEZONE_HINTS[normalized.upper()]
        if "/" in normalized:
            try:
                ZoneInfo(normalized)
            except (KeyError, ValueError):
                pass
            else:
                return normalized
    return timezone_from_phone(phone) or default_timezone


def parse_time_string(text: str | None) -> time | None:
    """Aceita "3:00 PM", "3 pm" e "15:00"."""
    if not text:
        return None
    value = text.strip()
    match = _TIME_12H.match(value)
    if match:
        hour = int(match.group(1))
        minute = int(match.group(2) or 0)
        if not 1 <= hour <= 12 or minute > 59:
            return None
        is_pm = match.group(3).lower().startswith("p")
        hour = hour % 12 + (12 if is_pm else 0)
        return time(hour, minute)
    match = _TIME_24H.match(value)
    if match:
        hour, minute = int(match.group(1)), int(match.group(2))
        if hour > 23 or minute > 59:
            return None
        return time(hour, minute)
    return None


def parse_date_string(text: str | None, today: date) -> date | None:
    """Aceita today, tomorrow, nome do dia da semana, YYYY-MM-DD e "in N days"."""
    if not text:
        return None
    value = text.strip().lower()
    if value in ("today", "tonight"):
        return today
    if value == "tomorrow":
        return today + timedelta(days=1)
    if value in _WEEKDAYS:
        ahead = (_WEEKDAYS.index(value) - today.weekday()) % 7 or 7
        return today + timedelta(days=ahead)
    match = _IN_DAYS.match(value)
    if match:
        return today + timedelta(days=int(match.group(1)))
    try:
        return date.fromisoformat(value)
    except ValueError:
        return None


def _local(day: date, at: time, tz: ZoneInfo) -> datetime:
    return datetime.combine(day, at, tzinfo=tz).astimezone(UTC)


def _resolve_relative(text: str, now: datetime, tz: ZoneInfo) -> datetime | None:
    value = text.strip().lower()
    if value == "later today":
        return now + LATER_TODAY_DELAY

    match = _RELATIVE_DELTA.match(value)
    if match:
        raw_amount, unit = match.group(1), match.group(2).lower()
        if raw_amount == "half an":
            return now + timedelta(minutes=30) if unit == "hour" else None
        amount = int(raw_amount) if raw_amount.isdigit() else _WORD_NUMBERS[raw_amount]
        if unit == "minute":
            return now + timedelta(minutes=amount)
        if unit == "hour":
            return now + timedelta(hours=amount)
        return now + timedelta(days=amount)

    match = _PART_OF_DAY.match(value)
    if match:
        today = now.astimezone(tz).date()
        day = today + timedelta(days=1) if match.group(1).lower() == "tomorrow" else today
        return _local(day, PART_OF_DAY[match.group(2).lower()], tz)
    return None


def resolve_reschedule_time(
    data: StructuredCallData,
    *,
    now: datetime,
    default_timezone: str,
    customer_phone: str | None = None,
) -> datetime | None:
    """Instante absoluto pedido pelo cliente, se resolúvel e futuro.

    Precedência: expressão relativa, depois data+hora explícitas.
    Só data: meia-noite local (o recorte comercial leva para o início da janela).
    Só hora: hoje no fuso do cliente.
    """
    if not data.reschedule_requested and not data.has_reschedule_hint:
        return None

    tz = ZoneInfo(resolve_timezone(data.reschedule_timezone, default_timezone, customer_phone))
    resolved: datetime | None = None

    if data.relative_time:
        resolved = _resolve_relative(data.relative_time, now, tz)

    if resolved is None and (data.reschedule_time or data.reschedule_date):
        today = now.astimezone(tz).date()
        day = parse_date_string(data.reschedule_date, today) if data.reschedule_date else today
        at = parse_time_string(data.reschedule_time) if data.reschedule_time else time(0, 0)
        if day is not None and at is not None:
            resolved = _local(day, at, tz)

    if resolved is None or resolved <= now:
        return None
    return resolved.astimezone(UTC)
