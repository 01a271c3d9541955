"""
Analytics service for summary statistics over logged sessions.
"""
from collections import Counter
from datetime import date
from typing import Iterable, Optional

from tracker.schemas.quantity import QuantityType
from tracker.schemas.session import SessionStats


def _most_common(values: Iterable[str]) -> Optional[str]:
    counts = Counter(value for value in values if value)
    if not counts:
        return None
    return counts.most_common(1)[0][0]


def _parse_date(value: str) -> Optional[date]:
    try:
        return date.fromisoformat(value)
    except (TypeError, ValueError):
        return None


def compute_session_stats(sessions: Iterable) -> SessionStats:
    """
    Summary numbers for a set of sessions.
    
    Numeric quantities are summed by raw amount; bowl sizes are not
    amounts and are left out. The weekly average spans the first to the
    last session date, at least one week.
    """
    sessions = list(sessions)
    if not sessions:
        return SessionStats(
            total_sessions=0,
            total_quantity_consumed=0.0,
            average_sessions_per_week=0.0,
        )
    
    total_quantity = 0.0
    for session in sessions:
        quantity = session.quantity
        if not isinstance(quantity, dict):
            quantity = quantity.model_dump()
        if quantity.get("type") == QuantityType.SIZE_CATEGORY.value:
            continue
        total_quantity += float(quantity.get("amount") or 0)
    
    dates = sorted(filter(None, (_parse_date(session.date) for session in sessions)))
    span_days = (dates[-1] - dates[0]).days if dates else 0
    weeks = max(span_days / 7, 1)
    
    return SessionStats(
        total_sessions=len(sessions),
        most_used_strain=_most_common(session.strain_name for session in sessions),
        most_used_vessel=_most_common(session.vessel for session in sessions),
        total_quantity_consumed=round(total_quantity, 2),
        favorite_location=_most_common(session.location for session in sessions),
        average_sessions_per_week=round(len(sessions) / weeks, 2),
    )
