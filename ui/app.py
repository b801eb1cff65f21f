from __future__ import annotations

import logging
import os
import secrets
from contextlib import asynccontextmanager
from datetime import date
from typing import Any

from fastapi import Body, Depends, FastAPI, HTTPException, status
from fastapi.security import HTTPBasic, HTTPBasicCredentials

from wth import (
    CheckInFlow,
    InvalidTransition,
    RecordStore,
    ReflectionScheduler,
    hour_board,
    load_partners,
    load_profile,
    now_local,
    resolve_coupons,
    resolve_for_day,
    resolve_for_hour,
    summarize,
    summarize_range,
    today_str,
    win_streak,
    workspace_root,
)

logger = logging.getLogger(__name__)

RANGE_DAYS = {"week": 7, "month": 30, "all": None}


# ── Session ───────────────────────────────────────────────────


class Session:
    """One local user's store, flow and BeastMode timer."""

    def __init__(self) -> None:
        self.root = workspace_root()
        self.profile = load_profile(self.root)
        self.partners = load_partners(self.root)
        self.store = RecordStore(self.root)
        self.flow = CheckInFlow(
            self.store,
            tier=self.profile.tier,
            partners=self.partners,
            clock=lambda: now_local(self.root),
        )
        self.scheduler = ReflectionScheduler(
            self.store,
            self.flow,
            period_seconds=self.profile.beast_period_seconds,
            align_to_clock=self.profile.beast_align_to_clock,
            wall_clock=lambda: now_local(self.root),
        )
        self.flow.select_hour(now_local(self.root).hour)


@asynccontextmanager
async def lifespan(app: FastAPI):
    logging.basicConfig(level=os.environ.get("WTH_LOG_LEVEL", "INFO"))
    session = Session()
    session.scheduler.start()
    app.state.session = session
    try:
        yield
    finally:
        session.scheduler.stop()
        session.scheduler.detach()


app = FastAPI(title="Win The Hour", version="0.6.2", lifespan=lifespan)

security = HTTPBasic(auto_error=False)


def get_current_user(credentials: HTTPBasicCredentials | None = Depends(security)) -> str:
    expected_username = os.environ.get("WTH_USERNAME", "")
    expected_password = os.environ.get("WTH_PASSWORD", "")

    if not expected_username or not expected_password:
        return "guest"

    if credentials is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
            headers={"WWW-Authenticate": "Basic"},
        )

    correct_username = secrets.compare_digest(credentials.username.encode("utf-8"), expected_username.encode("utf-8"))
    correct_password = secrets.compare_digest(credentials.password.encode("utf-8"), expected_password.encode("utf-8"))

    if not (correct_username and correct_password):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid credentials",
            headers={"WWW-Authenticate": "Basic"},
        )

    return credentials.username


def _session() -> Session:
    return app.state.session


def _date_param(value: str | None) -> str:
    if not value:
        return today_str(_session().root)
    try:
        return date.fromisoformat(value).isoformat()
    except ValueError:
        raise HTTPException(status_code=400, detail=f"Invalid date: {value}")


def _hour_param(value: Any) -> int:
    try:
        hour = int(value)
    except (TypeError, ValueError):
        raise HTTPException(status_code=400, detail=f"Invalid hour: {value!r}")
    if not 0 <= hour <= 23:
        raise HTTPException(status_code=400, detail=f"Hour must be 0-23, got {hour}")
    return hour


def _flow_response(s: Session) -> dict[str, Any]:
    sponsor = s.flow.sponsor()
    return {
        "ok": True,
        "flow": s.flow.snapshot(),
        "sponsor": sponsor.to_dict() if sponsor else None,
        "beast": _beast_response(s),
    }


def _beast_response(s: Session) -> dict[str, Any]:
    return {
        "enabled": s.scheduler.enabled,
        "countdown_seconds": s.scheduler.countdown(),
        "period_seconds": s.scheduler.period_seconds,
        "last_submit_at": s.scheduler.state.last_submit_at,
    }


# ── Health & records ──────────────────────────────────────────

@app.get("/healthz")
def healthz() -> dict[str, str]:
    return {"ok": "true"}


@app.get("/api/checkins")
async def api_checkins(date: str | None = None, username: str = Depends(get_current_user)) -> dict[str, Any]:
    """Check-ins for one day (defaults to today)."""
    s = _session()
    day = _date_param(date)
    records = s.store.records_for(day)
    return {"date": day, "records": [r.to_dict() for r in records], **summarize(records)}


@app.get("/api/board")
async def api_board(date: str | None = None, username: str = Depends(get_current_user)) -> dict[str, Any]:
    """Waking-hour board for one day: won / lost / pending / unavailable / future."""
    s = _session()
    day = _date_param(date)
    rows = hour_board(
        s.store.records_for(day),
        day,
        s.store.load_unavailable(),
        now_local(s.root),
        s.profile.waking_hours,
    )
    for row in rows:
        row["record"] = row["record"].to_dict() if row["record"] else None
    return {"date": day, "hours": rows}


@app.get("/api/summary")
async def api_summary(range: str = "week", username: str = Depends(get_current_user)) -> dict[str, Any]:
    """Won/logged counts over a week, month, or all time."""
    if range not in RANGE_DAYS:
        raise HTTPException(status_code=400, detail=f"Invalid range: {range}")
    s = _session()
    today = today_str(s.root)
    records = s.store.load_all()
    out = summarize_range(records, today, RANGE_DAYS[range])
    out["streak"] = win_streak(records, today)
    out["range"] = range
    return out


# ── Unavailable hours ─────────────────────────────────────────

@app.get("/api/unavailable")
async def api_get_unavailable(username: str = Depends(get_current_user)) -> dict[str, Any]:
    return {"hours": sorted(_session().store.load_unavailable())}


@app.put("/api/unavailable")
async def api_put_unavailable(payload: dict[str, Any] = Body(...), username: str = Depends(get_current_user)) -> dict[str, Any]:
    hours = payload.get("hours")
    if not isinstance(hours, list):
        raise HTTPException(status_code=400, detail="Missing hours list")
    cleaned = {_hour_param(h) for h in hours}
    saved = _session().store.save_unavailable(cleaned)
    return {"ok": saved, "hours": sorted(cleaned)}


@app.post("/api/unavailable/{hour}/toggle")
async def api_toggle_unavailable(hour: int, username: str = Depends(get_current_user)) -> dict[str, Any]:
    hours, saved = _session().store.toggle_unavailable(_hour_param(hour))
    return {"ok": saved, "hours": sorted(hours)}


# ── MYBED ─────────────────────────────────────────────────────

@app.get("/api/mybed/{day}")
async def api_get_mybed(day: str, username: str = Depends(get_current_user)) -> dict[str, Any]:
    day = _date_param(day)
    return {"date": day, "items": list(_session().store.load_priorities(day))}


@app.put("/api/mybed/{day}")
async def api_put_mybed(day: str, payload: dict[str, Any] = Body(...), username: str = Depends(get_current_user)) -> dict[str, Any]:
    day = _date_param(day)
    items = payload.get("items")
    if not isinstance(items, list):
        raise HTTPException(status_code=400, detail="Missing items list")
    s = _session()
    saved = s.store.save_priorities(day, [str(i) for i in items])
    return {"ok": saved, "date": day, "items": list(s.store.load_priorities(day))}


# ── Check-in flow ─────────────────────────────────────────────

def _run_intent(action, *args) -> dict[str, Any]:
    s = _session()
    try:
        action(*args)
    except InvalidTransition as e:
        raise HTTPException(status_code=409, detail=str(e))
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return _flow_response(s)


@app.get("/api/flow")
async def api_flow(username: str = Depends(get_current_user)) -> dict[str, Any]:
    return _flow_response(_session())


@app.post("/api/flow/select")
async def api_flow_select(payload: dict[str, Any] = Body(...), username: str = Depends(get_current_user)) -> dict[str, Any]:
    hour = _hour_param(payload.get("hour"))
    day = _date_param(payload.get("date"))
    return _run_intent(_session().flow.select_hour, hour, day)


@app.post("/api/flow/win")
async def api_flow_win(username: str = Depends(get_current_user)) -> dict[str, Any]:
    return _run_intent(_session().flow.declare_win)


@app.post("/api/flow/loss")
async def api_flow_loss(username: str = Depends(get_current_user)) -> dict[str, Any]:
    return _run_intent(_session().flow.declare_loss)


@app.post("/api/flow/plan")
async def api_flow_plan(payload: dict[str, Any] = Body(...), username: str = Depends(get_current_user)) -> dict[str, Any]:
    """Submit the next-hour plan; an empty plan leaves the flow where it is."""
    return _run_intent(_session().flow.submit_plan, str(payload.get("text", "")))


@app.post("/api/flow/reason")
async def api_flow_reason(payload: dict[str, Any] = Body(...), username: str = Depends(get_current_user)) -> dict[str, Any]:
    return _run_intent(_session().flow.submit_loss_reason, str(payload.get("text", "")))


@app.post("/api/flow/rate")
async def api_flow_rate(payload: dict[str, Any] = Body(...), username: str = Depends(get_current_user)) -> dict[str, Any]:
    rating = payload.get("rating")
    if isinstance(rating, bool) or not isinstance(rating, int):
        raise HTTPException(status_code=400, detail=f"Invalid rating: {rating!r}")
    return _run_intent(_session().flow.rate, rating)


@app.post("/api/flow/relog")
async def api_flow_relog(username: str = Depends(get_current_user)) -> dict[str, Any]:
    return _run_intent(_session().flow.relog)


# ── BeastMode ─────────────────────────────────────────────────

@app.get("/api/beast")
async def api_beast(username: str = Depends(get_current_user)) -> dict[str, Any]:
    return _beast_response(_session())


@app.post("/api/beast/enable")
async def api_beast_enable(username: str = Depends(get_current_user)) -> dict[str, Any]:
    s = _session()
    s.scheduler.enable()
    return _beast_response(s)


@app.post("/api/beast/disable")
async def api_beast_disable(username: str = Depends(get_current_user)) -> dict[str, Any]:
    s = _session()
    s.scheduler.disable()
    return _beast_response(s)


# ── Placements ────────────────────────────────────────────────

@app.get("/api/placements/hour/{hour}")
async def api_placement_hour(hour: int, tier: str | None = None, username: str = Depends(get_current_user)) -> dict[str, Any]:
    s = _session()
    partner = resolve_for_hour(s.partners, _hour_param(hour), tier or s.profile.tier)
    return {"partner": partner.to_dict() if partner else None}


@app.get("/api/placements/day")
async def api_placement_day(tier: str | None = None, username: str = Depends(get_current_user)) -> dict[str, Any]:
    s = _session()
    partner = resolve_for_day(s.partners, tier or s.profile.tier)
    return {"partner": partner.to_dict() if partner else None}


@app.get("/api/placements/coupons")
async def api_placement_coupons(tier: str | None = None, username: str = Depends(get_current_user)) -> dict[str, Any]:
    s = _session()
    coupons = resolve_coupons(s.partners, tier or s.profile.tier)
    return {"count": len(coupons), "partners": [p.to_dict() for p in coupons]}
