"""
Date windows and aggregate statistics for a doctor's practice.
"""

from collections import Counter
from datetime import datetime, timedelta
from typing import Any, Dict, Iterable, List, Optional, Set, Tuple

from ...core.utils.datetime_utils import end_of_day, ensure_utc, get_current_timestamp, start_of_day
from ...domain.enums import ACTIVE_APPOINTMENT_STATUSES

POPULAR_SLOT_COUNT = 5
UPCOMING_WINDOW_DAYS = 7


def stats_window(
    period: str,
    start: Optional[datetime] = None,
    end: Optional[datetime] = None,
    now: Optional[datetime] = None,
) -> Tuple[datetime, datetime]:
    """Explicit start/end when both are given, otherwise the current day/week/month/year to now."""
    now = now or get_current_timestamp()
    if start is not None and end is not None:
        return ensure_utc(start), ensure_utc(end)

    today = start_of_day(now)
    if period == "day":
        begin = today
    elif period == "week":
        # Weeks start on Sunday
        begin = today - timedelta(days=(today.weekday() + 1) % 7)
    elif period == "year":
        begin = today.replace(month=1, day=1)
    else:
        begin = today.replace(day=1)
    return begin, now


def schedule_window(
    period: Optional[str],
    start: Optional[datetime] = None,
    end: Optional[datetime] = None,
    now: Optional[datetime] = None,
) -> Tuple[datetime, datetime]:
    """Window for listing a doctor's calendar; defaults to the next seven days."""
    now = now or get_current_timestamp()
    if start is not None and end is not None:
        return ensure_utc(start), ensure_utc(end)

    if period == "today":
        return start_of_day(now), end_of_day(now)
    if period == "tomorrow":
        tomorrow = now + timedelta(days=1)
        return start_of_day(tomorrow), end_of_day(tomorrow)
    if period == "week":
        return start_of_day(now), end_of_day(now + timedelta(days=7))
    if period == "month":
        return start_of_day(now), end_of_day(now + timedelta(days=30))
    return now, now + timedelta(days=UPCOMING_WINDOW_DAYS)


def calendar_summary(appointments: List[Dict[str, Any]], total: int, now: Optional[datetime] = None) -> Dict[str, Any]:
    """Quick counters shown alongside a page of the doctor's calendar."""
    today = (now or get_current_timestamp()).date()
    return {
        "total": total,
        "byStatus": dict(Counter(apt.get("status") for apt in appointments)),
        "upcomingToday": sum(
            1
            for apt in appointments
            if ensure_utc(apt["scheduledAt"]).date() == today and apt.get("status") in ("scheduled", "confirmed")
        ),
    }


def _rate(part: int, whole: int) -> float:
    return round(part / whole * 100, 2) if whole else 0.0


def _daily_breakdown(
    appointments: List[Dict[str, Any]], start: datetime, end: datetime, fee: float
) -> List[Dict[str, Any]]:
    by_day: Dict[str, List[Dict[str, Any]]] = {}
    for apt in appointments:
        by_day.setdefault(ensure_utc(apt["scheduledAt"]).date().isoformat(), []).append(apt)

    days = []
    current = start.date()
    while current <= end.date():
        key = current.isoformat()
        day = by_day.get(key, [])
        completed = sum(1 for a in day if a.get("status") == "completed")
        days.append(
            {
                "date": key,
                "total": len(day),
                "completed": completed,
                "cancelled": sum(1 for a in day if a.get("status") == "cancelled"),
                "scheduled": sum(1 for a in day if a.get("status") in ("scheduled", "confirmed")),
                "revenue": completed * fee,
            }
        )
        current += timedelta(days=1)
    return days


def compute_doctor_stats(
    appointments: List[Dict[str, Any]],
    returning_patient_ids: Iterable[str],
    consultation_fee: float,
    period: str,
    start: datetime,
    end: datetime,
) -> Dict[str, Any]:
    """Aggregate the appointments of one window.

    ``returning_patient_ids`` are the patients seen by this doctor before
    ``start``; every other patient in the window counts as new.
    """
    total = len(appointments)
    statuses = Counter(apt.get("status") for apt in appointments)
    completed = statuses.get("completed", 0)
    cancelled = statuses.get("cancelled", 0)

    patient_ids: Set[str] = {apt["patientId"] for apt in appointments if apt.get("patientId")}
    returning = patient_ids.intersection(returning_patient_ids)

    hours = Counter(f"{ensure_utc(apt['scheduledAt']).hour:02d}:00" for apt in appointments)
    daily = _daily_breakdown(appointments, start, end, consultation_fee)
    revenue = completed * consultation_fee

    return {
        "period": {"type": period, "startDate": start, "endDate": end},
        "overview": {
            "totalAppointments": total,
            "completedAppointments": completed,
            "cancelledAppointments": cancelled,
            "noShowAppointments": statuses.get("no-show", 0),
            "scheduledAppointments": sum(statuses.get(s, 0) for s in ACTIVE_APPOINTMENT_STATUSES),
            "completionRate": _rate(completed, total),
            "cancellationRate": _rate(cancelled, total),
        },
        "patients": {
            "total": len(patient_ids),
            "new": len(patient_ids) - len(returning),
            "returning": len(returning),
        },
        "revenue": {
            "total": revenue,
            "consultationFee": consultation_fee,
            "averagePerDay": round(revenue / len(daily), 2) if daily else 0.0,
        },
        "appointmentTypes": dict(Counter(apt.get("type") for apt in appointments)),
        "popularTimeSlots": [
            {"time": time, "count": count} for time, count in hours.most_common(POPULAR_SLOT_COUNT)
        ],
        "dailyBreakdown": daily,
    }
