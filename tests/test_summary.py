"""Tests for wth/summary.py."""

from datetime import datetime
from zoneinfo import ZoneInfo

from wth.models import CheckInRecord
from wth.summary import format_hour, hour_board, summarize, summarize_range, win_streak


def _win(day, hour):
    return CheckInRecord.win(day, hour, "plan", "t")


def _loss(day, hour):
    return CheckInRecord.loss(day, hour, "reason", 2, "t")


def test_summarize():
    assert summarize([_win("2026-03-01", 9), _win("2026-03-01", 10), _loss("2026-03-01", 11)]) == {
        "won": 2,
        "logged": 3,
        "win_rate": 67,
    }
    assert summarize([]) == {"won": 0, "logged": 0, "win_rate": 0}


def test_hour_board_statuses():
    now = datetime(2026, 3, 1, 14, 20, tzinfo=ZoneInfo("UTC"))
    records = [_win("2026-03-01", 9), _loss("2026-03-01", 10), _win("2026-03-01", 12)]
    rows = {r["hour"]: r for r in hour_board(records, "2026-03-01", {11, 12}, now, range(8, 17))}

    assert rows[9]["status"] == "won"
    assert rows[10]["status"] == "lost"
    assert rows[11]["status"] == "unavailable"
    assert rows[12]["status"] == "won"  # logged before being marked unavailable
    assert rows[13]["status"] == "pending"
    assert rows[14]["status"] == "pending"
    assert rows[15]["status"] == "future"
    assert rows[8]["label"] == "8:00 AM"
    assert list(rows) == list(range(8, 17))


def test_hour_board_past_day_has_no_future():
    now = datetime(2026, 3, 1, 8, 0, tzinfo=ZoneInfo("UTC"))
    rows = hour_board([], "2026-02-28", set(), now)
    assert {r["status"] for r in rows} == {"pending"}


def test_summarize_range_week():
    records = [
        _win("2026-02-20", 9),  # outside the week
        _win("2026-02-24", 9),
        _loss("2026-02-24", 10),
        _win("2026-03-01", 9),
    ]
    out = summarize_range(records, "2026-03-01", 7)
    assert [d["date"] for d in out["days"]] == [
        "2026-02-23", "2026-02-24", "2026-02-25", "2026-02-26",
        "2026-02-27", "2026-02-28", "2026-03-01",
    ]
    assert out["days"][1] == {"date": "2026-02-24", "won": 1, "logged": 2, "win_rate": 50}
    assert out["won"] == 2
    assert out["logged"] == 3


def test_summarize_range_all():
    records = [_win("2026-02-20", 9), _loss("2026-03-01", 9), _win("2026-03-05", 9)]
    out = summarize_range(records, "2026-03-01", None)
    assert [d["date"] for d in out["days"]] == ["2026-02-20", "2026-03-01"]
    assert out["win_rate"] == 50


def test_win_streak():
    records = [
        _win("2026-02-27", 9),
        _win("2026-02-28", 9),
        _loss("2026-03-01", 9),
        _win("2026-02-25", 9),
    ]
    # today has no win yet, so the streak counts from yesterday
    assert win_streak(records, "2026-03-01") == 2
    assert win_streak(records + [_win("2026-03-01", 10)], "2026-03-01") == 3
    assert win_streak(records, "2026-03-03") == 0


def test_format_hour():
    assert format_hour(0) == "12:00 AM"
    assert format_hour(11) == "11:00 AM"
    assert format_hour(12) == "12:00 PM"
    assert format_hour(23) == "11:00 PM"
