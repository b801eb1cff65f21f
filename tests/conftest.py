"""Shared test fixtures for check-in engine tests."""

from __future__ import annotations

import json
import os
from datetime import datetime, timedelta
from pathlib import Path
from zoneinfo import ZoneInfo

import pytest
import yaml

from wth.store import RecordStore


class FakeClock:
    """Callable clock returning a settable, timezone-aware datetime."""

    def __init__(self, now: datetime) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


@pytest.fixture
def workspace(tmp_path: Path) -> Path:
    """Create a temporary workspace with profile, partners and stored check-ins."""
    root = tmp_path / "workspace"
    (root / "storage").mkdir(parents=True)

    # Profile
    profile = {
        "timezone": "UTC",
        "tier": "Freshman",
        "beast_mode": {"period_minutes": 15, "align_to_clock": False},
        "waking_hours": "06-23",
    }
    (root / "profile.yaml").write_text(
        yaml.dump(profile, default_flow_style=False), encoding="utf-8"
    )

    # Partners
    partners = {
        "partners": [
            {
                "partner_id": "focusco-hour",
                "brand_name": "FocusCo",
                "tagline": "Deep work, on tap.",
                "placement_type": "hour",
                "tier_visibility": "all",
                "hour_scope": {"start": 9, "end": 17},
                "priority": 1,
            },
            {
                "partner_id": "notion-day",
                "brand_name": "Notion",
                "placement_type": "day",
                "tier_visibility": "all",
                "morning_message": "Today's flow powered by Notion.",
                "mission_title": "Capture Your North Star",
                "mission_description": "Write down your one big goal for today.",
                "mission_xp": 200,
                "priority": 1,
            },
            {
                "partner_id": "notion-coupon",
                "brand_name": "Notion",
                "placement_type": "coupon",
                "tier_visibility": "paid_only",
                "coupon_payload": {
                    "code": "WINTHEHOUR",
                    "description": "3 months of Notion Plus free.",
                    "url": "https://notion.so",
                    "cta_text": "Claim Free Trial",
                },
                "priority": 2,
            },
        ]
    }
    (root / "partners.yaml").write_text(
        yaml.dump(partners, default_flow_style=False, sort_keys=False), encoding="utf-8"
    )

    # Stored check-ins: one of each historical shape
    checkins = [
        {"date": "2026-02-28", "hour": 9, "won": True, "loggedAt": "2026-02-28T09:58:00Z"},
        {"date": "2026-02-28", "hour": 10, "won": False, "loggedAt": "2026-02-28T10:57:00Z"},
        {
            "date": "2026-02-28",
            "hour": 11,
            "hour_result": "loss",
            "intensity_rating": 4,
            "loss_reason_text": "meetings",
            "loggedAt": "2026-02-28T11:55:00Z",
        },
        {
            "schemaVersion": 2,
            "date": "2026-02-28",
            "hour": 12,
            "result": "win",
            "nextHourPlan": "lunch walk",
            "loggedAt": "2026-02-28T12:55:00+00:00",
        },
    ]
    (root / "storage" / "checkins").write_text(json.dumps(checkins), encoding="utf-8")
    (root / "storage" / "unavailable_hours").write_text("[0, 1, 2, 3, 4, 5]", encoding="utf-8")

    # Set env var
    os.environ["WTH_ROOT"] = str(root)
    yield root
    # Cleanup
    if "WTH_ROOT" in os.environ:
        del os.environ["WTH_ROOT"]


@pytest.fixture
def store(workspace: Path) -> RecordStore:
    return RecordStore(workspace)


@pytest.fixture
def clock() -> FakeClock:
    """2026-03-01 14:20 UTC."""
    return FakeClock(datetime(2026, 3, 1, 14, 20, tzinfo=ZoneInfo("UTC")))
