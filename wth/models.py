"""Typed dataclasses for the check-in data model.

Records serialize with to_dict() into the current on-disk shape (camelCase
keys, absent fields omitted). Decoding of stored records goes through
wth.migrate, which understands every historical shape.
Config models (Profile, Partner) read snake_case YAML via from_dict.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from enum import Enum
from typing import Any


SCHEMA_VERSION = 2
MYBED_SLOTS = 6
RATING_SCALE = (1, 2, 3, 4, 5)


class HourResult(str, Enum):
    WIN = "win"
    LOSS = "loss"


def _check_hour(hour: Any) -> int:
    if isinstance(hour, bool) or not isinstance(hour, int) or not 0 <= hour <= 23:
        raise ValueError(f"Hour must be an integer 0-23, got {hour!r}")
    return hour


# ── Check-in ──────────────────────────────────────────────────


@dataclass(frozen=True)
class CheckInRecord:
    """One win/loss judgment for a (date, hour) slot."""

    date: str
    hour: int
    result: HourResult
    logged_at: str = ""
    intensity_rating: int | None = None
    loss_reason: str | None = None
    next_hour_plan: str | None = None

    def __post_init__(self) -> None:
        date.fromisoformat(self.date)
        _check_hour(self.hour)
        if not isinstance(self.result, HourResult):
            object.__setattr__(self, "result", HourResult(self.result))
        if self.result is HourResult.WIN:
            if self.intensity_rating is not None or self.loss_reason is not None:
                raise ValueError("A WIN record carries no intensity rating or loss reason")
        else:
            if self.next_hour_plan is not None:
                raise ValueError("A LOSS record carries no next-hour plan")
            if self.intensity_rating is not None and self.intensity_rating not in RATING_SCALE:
                raise ValueError(f"Intensity rating must be 1-5, got {self.intensity_rating!r}")

    @classmethod
    def win(cls, day: str, hour: int, plan: str, logged_at: str) -> CheckInRecord:
        return cls(date=day, hour=hour, result=HourResult.WIN, logged_at=logged_at, next_hour_plan=plan)

    @classmethod
    def loss(cls, day: str, hour: int, reason: str, rating: int, logged_at: str) -> CheckInRecord:
        return cls(
            date=day,
            hour=hour,
            result=HourResult.LOSS,
            logged_at=logged_at,
            intensity_rating=rating,
            loss_reason=reason,
        )

    @property
    def key(self) -> tuple[str, int]:
        return (self.date, self.hour)

    @property
    def won(self) -> bool:
        return self.result is HourResult.WIN

    def to_dict(self) -> dict[str, Any]:
        d: dict[str, Any] = {
            "schemaVersion": SCHEMA_VERSION,
            "date": self.date,
            "hour": self.hour,
            "result": self.result.value,
        }
        if self.intensity_rating is not None:
            d["intensityRating"] = self.intensity_rating
        if self.loss_reason is not None:
            d["lossReason"] = self.loss_reason
        if self.next_hour_plan is not None:
            d["nextHourPlan"] = self.next_hour_plan
        d["loggedAt"] = self.logged_at
        return d


def empty_priorities() -> tuple[str, ...]:
    return ("",) * MYBED_SLOTS


def normalize_priorities(items: Any) -> tuple[str, ...]:
    """Coerce a stored MYBED list into exactly six strings."""
    if not isinstance(items, (list, tuple)):
        return empty_priorities()
    slots = ["" if v is None else str(v) for v in items[:MYBED_SLOTS]]
    slots += [""] * (MYBED_SLOTS - len(slots))
    return tuple(slots)


# ── Partners ──────────────────────────────────────────────────


PLACEMENT_TYPES = {"hour", "day", "coupon"}


@dataclass(frozen=True)
class HourScope:
    """Inclusive hour window a placement is limited to."""

    start: int
    end: int

    def __post_init__(self) -> None:
        _check_hour(self.start)
        _check_hour(self.end)
        if self.start > self.end:
            raise ValueError(f"Hour scope start {self.start} is after end {self.end}")

    def contains(self, hour: int) -> bool:
        return self.start <= hour <= self.end


@dataclass(frozen=True)
class CouponPayload:
    code: str
    description: str = ""
    url: str | None = None
    cta_text: str | None = None

    @classmethod
    def from_dict(cls, d: dict[str, Any]) -> CouponPayload:
        return cls(
            code=str(d["code"]),
            description=str(d.get("description", "")),
            url=d.get("url"),
            cta_text=d.get("cta_text"),
        )

    def to_dict(self) -> dict[str, Any]:
        d: dict[str, Any] = {"code": self.code, "description": self.description}
        if self.url:
            d["url"] = self.url
        if self.cta_text:
            d["cta_text"] = self.cta_text
        return d


@dataclass(frozen=True)
class Partner:
    partner_id: str
    brand_name: str
    placement_type: str  # hour, day, coupon
    tier_visibility: str = "all"
    priority: int = 100
    tagline: str = ""
    hour_scope: HourScope | None = None
    # day placements
    morning_message: str = ""
    evening_message: str = ""
    mission_title: str = ""
    mission_description: str = ""
    mission_xp: int = 0
    # coupon placements
    coupon_payload: CouponPayload | None = None

    @classmethod
    def from_dict(cls, d: dict[str, Any]) -> Partner:
        placement_type = str(d.get("placement_type", "")).lower()
        if placement_type not in PLACEMENT_TYPES:
            raise ValueError(f"Invalid placement type: {placement_type!r}")
        if not d.get("partner_id"):
            raise ValueError("Missing required field: partner_id")
        scope = d.get("hour_scope")
        coupon = d.get("coupon_payload")
        return cls(
            partner_id=str(d["partner_id"]),
            brand_name=str(d.get("brand_name", "")),
            placement_type=placement_type,
            tier_visibility=str(d.get("tier_visibility", "all")),
            priority=int(d.get("priority", 100)),
            tagline=str(d.get("tagline", "") or ""),
            hour_scope=HourScope(int(scope["start"]), int(scope["end"])) if scope else None,
            morning_message=str(d.get("morning_message", "") or ""),
            evening_message=str(d.get("evening_message", "") or ""),
            mission_title=str(d.get("mission_title", "") or ""),
            mission_description=str(d.get("mission_description", "") or ""),
            mission_xp=int(d.get("mission_xp", 0) or 0),
            coupon_payload=CouponPayload.from_dict(coupon) if coupon else None,
        )

    def to_dict(self) -> dict[str, Any]:
        d: dict[str, Any] = {
            "partner_id": self.partner_id,
            "brand_name": self.brand_name,
            "placement_type": self.placement_type,
            "tier_visibility": self.tier_visibility,
            "priority": self.priority,
        }
        if self.tagline:
            d["tagline"] = self.tagline
        if self.hour_scope:
            d["hour_scope"] = {"start": self.hour_scope.start, "end": self.hour_scope.end}
        if self.placement_type == "day":
            d["morning_message"] = self.morning_message
            d["evening_message"] = self.evening_message
            if self.mission_title:
                d["mission_title"] = self.mission_title
                d["mission_description"] = self.mission_description
                d["mission_xp"] = self.mission_xp
        if self.coupon_payload:
            d["coupon_payload"] = self.coupon_payload.to_dict()
        return d


# ── BeastMode ─────────────────────────────────────────────────


@dataclass(frozen=True)
class SchedulerState:
    enabled: bool = False
    last_submit_at: int | None = None  # epoch milliseconds


# ── Profile ───────────────────────────────────────────────────


@dataclass
class Profile:
    timezone: str = "UTC"
    tier: str = "Freshman"
    beast_period_minutes: int = 15
    beast_align_to_clock: bool = False
    waking_start: int = 6
    waking_end: int = 23

    @classmethod
    def from_dict(cls, d: dict[str, Any]) -> Profile:
        if not d or not isinstance(d, dict):
            return cls()
        beast = d.get("beast_mode") or {}
        if not isinstance(beast, dict):
            beast = {}
        start, end = 6, 23
        waking = d.get("waking_hours")
        if isinstance(waking, str) and "-" in waking:
            a, b = waking.split("-", 1)
            start, end = _check_hour(int(a)), _check_hour(int(b))
        return cls(
            timezone=str(d.get("timezone", "UTC")),
            tier=str(d.get("tier", "Freshman")),
            beast_period_minutes=max(1, int(beast.get("period_minutes", 15))),
            beast_align_to_clock=bool(beast.get("align_to_clock", False)),
            waking_start=min(start, end),
            waking_end=max(start, end),
        )

    @property
    def beast_period_seconds(self) -> int:
        return self.beast_period_minutes * 60

    @property
    def waking_hours(self) -> range:
        return range(self.waking_start, self.waking_end + 1)
