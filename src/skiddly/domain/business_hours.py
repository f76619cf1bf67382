"""Recorte de horários para a janela comercial do tenant.

Toda aritmética acontece no fuso do tenant com zoneinfo, então a janela
continua correta em semanas de mudança de horário de verão.
"""

from __future__ import annotations

from datetime import UTC, date, datetime, time, timedelta

from skiddly.domain.policy import BusinessHours

# Limite de busca em dias
_MAX_DAYS_AHEAD = 14


def _localize(day: date, at: time, hours: BusinessHours) -> datetime:
    """Combina data e hora locais, normalizando horários inexistentes (gap de DST)."""
    naive = datetime.combine(day, at, tzinfo=hours.tz)
    return naive.astimezone(UTC).astimezone(hours.tz)


def _is_calling_day(day: date, hours: BusinessHours) -> bool:
    return hours.weekend_calling or day.weekday() < 5


def is_within_business_hours(moment: datetime, hours: BusinessHours) -> bool:
    """True se `moment` cai dentro da janela (início inclusivo, fim exclusivo)."""
    local = moment.astimezone(hours.tz)
    wall = local.time().replace(tzinfo=None)
    return _is_calling_day(local.date(), hours) and hours.start <= wall < hours.end


def clip_to_business_hours(candidate: datetime, hours: BusinessHours) -> datetime:
    """Move `candidate` para o próximo instante permitido.

    - antes do início: mesmo dia, no início
    - no fim ou depois: dia seguinte, no início
    - dia sem ligação: avança até o próximo dia permitido

    Retorna datetime aware em UTC.
    """
    if candidate.tzinfo is None:
        msg = "candidate deve ser timezone-aware"
        raise ValueError(msg)

    local = candidate.astimezone(hours.tz)
    for _ in range(_MAX_DAYS_AHEAD):
        day = local.date()
        if not _is_calling_day(day, hours):
            local = _localize(day + timedelta(days=1), hours.start, hours)
            continue

        wall = local.time().replace(tzinfo=None)
        if wall < hours.start:
            return _localize(day, hours.start, hours).astimezone(UTC)
        if wall >= hours.end:
            local = _localize(day + timedelta(days=1), hours.start, hours)
            continue
        return local.astimezone(UTC)

    msg = "nenhum horário comercial encontrado na janela de busca"
    raise ValueError(msg)
