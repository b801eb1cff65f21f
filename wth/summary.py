"""Read-only counts over check-in records: win rate, hour board, streaks."""

from __future__ import annotations

from datetime import date, datetime, timedelta
from typing import Any, Iterable

from wth.models import CheckInRecord


def summarize(records: Iterable[CheckInRecord]) -> dict[str, int]:
    """Hours won, hours logged and win rate (whole percent)."""
    records = list(records)
    won = sum(1 for r in records if r.won)
    logged = len(records)
    return {
        "won": won,
        "logged": logged,
        "win_rate": round(won / logged * 100) if logged else 0,
    }


def hour_board(
    records: Iterable[CheckInRecord],
    day: str,
    unavailable: set[int],
    now: datetime,
    waking: Iterable[int] = range(6, 24),
) -> list[dict[str, Any]]:
    """Per-hour status for one day over the waking window.

    Status is one of: won, lost, unavailable, future, pending.
    A logged hour shows its result even if later marked unavailable.
    """
    by_hour = {r.hour: r for r in records if r.date == day}
    today = now.date().isoformat()
    rows = []
    for hour in waking:
        record = by_hour.get(hour)
        if record is not None:
            status = "won" if record.won else "lost"
        elif hour in unavailable:
            status = "unavailable"
        elif (day, hour) > (today, now.hour):
            status = "future"
        else:
            status = "pending"
        rows.append({"hour": hour, "label": format_hour(hour), "status": status, "record": record})
    return rows


def summarize_range(records: Iterable[CheckInRecord], end_date: str, days: int | None = 7) -> dict[str, Any]:
    """Per-day won/logged rows for the last ``days`` days ending at end_date.

    ``days=None`` covers every date that has a record, oldest first.
    """
    records = list(records)
    end = date.fromisoformat(end_date)
    if days is None:
        dates = sorted({r.date for r in records if r.date <= end_date})
    else:
        dates = [(end - timedelta(days=i)).isoformat() for i in range(days - 1, -1, -1)]

    wanted = set(dates)
    per_day: dict[str, list[CheckInRecord]] = {d: [] for d in dates}
    for r in records:
        if r.date in wanted:
            per_day[r.date].append(r)

    rows = [{"date": d, **summarize(per_day[d])} for d in dates]
    totals = summarize(r for d in dates for r in per_day[d])
    return {"days": rows, **totals}


def win_streak(records: Iterable[CheckInRecord], today: str) -> int:
    """Consecutive days with at least one won hour.

    Counts back from today; if today has no win yet, from yesterday.
    """
    win_days = {r.date for r in records if r.won}
    current = date.fromisoformat(today)
    if current.isoformat() not in win_days:
        current -= timedelta(days=1)
    streak = 0
    while current.isoformat() in win_days:
        streak += 1
        current -= timedelta(days=1)
    return streak


def format_hour(hour: int) -> str:
    """12-hour clock label, e.g. 0 -> '12:00 AM', 14 -> '2:00 PM'."""
    suffix = "AM" if hour < 12 else "PM"
    display = 12 if hour % 12 == 0 else hour % 12
    return f"{display}:00 {suffix}"
