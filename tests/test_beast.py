"""Tests for wth/beast.py — BeastMode state and the reset timer."""

import asyncio
from datetime import datetime
from zoneinfo import ZoneInfo

import pytest

from wth.beast import (
    ReflectionScheduler,
    countdown_seconds,
    disable,
    enable,
    seconds_to_boundary,
    stamp_submit,
)
from wth.flow import CheckInFlow, FlowState
from wth.models import SchedulerState
from wth.store import RecordStore

NOW_MS = 1_772_376_000_000


@pytest.fixture
def flow(store, clock):
    f = CheckInFlow(store, clock=clock)
    f.select_hour(14)
    return f


# ── Pure state ────────────────────────────────────────────────


def test_countdown_from_last_submit():
    state = SchedulerState(enabled=True, last_submit_at=NOW_MS - 400_000)
    assert countdown_seconds(state, NOW_MS, 900) == 500


def test_countdown_without_stamp_is_full_period():
    assert countdown_seconds(SchedulerState(enabled=True), NOW_MS, 900) == 900


def test_countdown_is_clamped():
    overdue = SchedulerState(enabled=True, last_submit_at=NOW_MS - 2_000_000)
    assert countdown_seconds(overdue, NOW_MS, 900) == 0
    skewed = SchedulerState(enabled=True, last_submit_at=NOW_MS + 60_000)
    assert countdown_seconds(skewed, NOW_MS, 900) == 900


def test_stamp_ignored_while_disabled():
    off = SchedulerState()
    assert stamp_submit(off, NOW_MS) == off
    assert stamp_submit(enable(off), NOW_MS).last_submit_at == NOW_MS


def test_enable_disable_keep_stamp():
    state = SchedulerState(enabled=True, last_submit_at=5)
    assert disable(state) == SchedulerState(enabled=False, last_submit_at=5)
    assert enable(disable(state)) == state


def test_seconds_to_boundary():
    now = datetime(2026, 3, 1, 14, 20, tzinfo=ZoneInfo("UTC"))
    assert seconds_to_boundary(now, 900) == 600
    assert seconds_to_boundary(now.replace(minute=30), 900) == 900


# ── Scheduler without a running loop ──────────────────────────


def test_disabled_scheduler_has_no_countdown(store, flow):
    scheduler = ReflectionScheduler(store, flow)
    assert not scheduler.enabled
    assert scheduler.countdown() is None
    scheduler.start()
    assert not scheduler.running


def test_enable_persists_and_reports_full_period(store, workspace, flow):
    scheduler = ReflectionScheduler(store, flow, period_seconds=900, clock_ms=lambda: NOW_MS)
    scheduler.enable()
    assert scheduler.countdown() == 900
    assert RecordStore(workspace).load_scheduler_state().enabled


def test_submit_stamps_while_enabled(store, workspace, flow):
    scheduler = ReflectionScheduler(store, flow, clock_ms=lambda: NOW_MS)
    scheduler.enable()
    flow.declare_win()
    flow.submit_plan("x")
    assert scheduler.state.last_submit_at == NOW_MS
    assert RecordStore(workspace).load_scheduler_state().last_submit_at == NOW_MS


def test_submit_not_stamped_while_disabled(store, flow):
    scheduler = ReflectionScheduler(store, flow, clock_ms=lambda: NOW_MS)
    flow.declare_win()
    flow.submit_plan("x")
    assert scheduler.state.last_submit_at is None


def test_restart_resumes_countdown(store, workspace, flow):
    store.save_scheduler_state(SchedulerState(enabled=True, last_submit_at=NOW_MS - 400_000))
    scheduler = ReflectionScheduler(
        RecordStore(workspace), flow, period_seconds=900, clock_ms=lambda: NOW_MS
    )
    assert scheduler.enabled
    assert scheduler.countdown() == 500


def test_align_to_clock(store, flow, clock):
    scheduler = ReflectionScheduler(store, flow, period_seconds=900, align_to_clock=True, wall_clock=clock)
    scheduler.enable()
    assert scheduler.countdown() == 600


def test_attach_moves_listener(store, clock, flow):
    scheduler = ReflectionScheduler(store, flow, clock_ms=lambda: NOW_MS)
    other = CheckInFlow(store, clock=clock)
    scheduler.attach(other)
    scheduler.enable()

    flow.declare_win()
    flow.submit_plan("x")
    assert scheduler.state.last_submit_at is None

    other.select_hour(13)
    other.declare_win()
    other.submit_plan("y")
    assert scheduler.state.last_submit_at == NOW_MS


# ── Timer on an event loop ────────────────────────────────────


def test_timer_forces_reset(store, flow):
    scheduler = ReflectionScheduler(store, flow, period_seconds=0.05)

    async def scenario():
        scheduler.enable()
        flow.declare_loss()
        flow.set_loss_reason("half a thought")
        await asyncio.sleep(0.08)
        scheduler.stop()

    asyncio.run(scenario())
    assert scheduler.fire_count >= 1
    assert flow.state is FlowState.ASK
    assert flow.reason_draft == ""


def test_timer_keeps_firing(store, flow):
    scheduler = ReflectionScheduler(store, flow, period_seconds=0.02)

    async def scenario():
        scheduler.enable()
        await asyncio.sleep(0.15)
        scheduler.stop()

    asyncio.run(scenario())
    assert scheduler.fire_count >= 2


def test_disable_cancels_timer(store, flow):
    scheduler = ReflectionScheduler(store, flow, period_seconds=0.05)

    async def scenario():
        scheduler.enable()
        assert scheduler.running
        flow.declare_win()
        scheduler.disable()
        await asyncio.sleep(0.1)

    asyncio.run(scenario())
    assert scheduler.fire_count == 0
    assert flow.state is FlowState.PLAN
    assert scheduler.countdown() is None


def test_reenable_restarts_full_period(store, flow):
    scheduler = ReflectionScheduler(store, flow, period_seconds=10)

    async def scenario():
        scheduler.enable()
        scheduler.enable()
        remaining = scheduler.countdown()
        scheduler.stop()
        return remaining

    remaining = asyncio.run(scenario())
    assert 9 < remaining <= 10


def test_enable_before_loop_starts_on_start(store, flow):
    scheduler = ReflectionScheduler(store, flow, period_seconds=0.05)
    scheduler.enable()
    assert not scheduler.running

    async def scenario():
        scheduler.start()
        assert scheduler.running
        await asyncio.sleep(0.08)
        scheduler.stop()

    asyncio.run(scenario())
    assert scheduler.fire_count >= 1


def test_fire_without_flow_is_harmless(store):
    scheduler = ReflectionScheduler(store, period_seconds=0.02)

    async def scenario():
        scheduler.enable()
        await asyncio.sleep(0.05)
        scheduler.stop()

    asyncio.run(scenario())
    assert scheduler.fire_count >= 1


def test_hour_switch_drops_pending_reset(store, flow):
    scheduler = ReflectionScheduler(store, flow, period_seconds=0.2)

    async def scenario():
        scheduler.enable()
        await asyncio.sleep(0.15)
        flow.select_hour(13)
        flow.declare_loss()
        flow.set_loss_reason("typing")
        await asyncio.sleep(0.1)
        scheduler.stop()

    asyncio.run(scenario())
    assert scheduler.fire_count == 0
    assert flow.state is FlowState.LOSS_REASON
    assert flow.reason_draft == "typing"


def test_hour_switch_restarts_full_period(store, flow):
    scheduler = ReflectionScheduler(store, flow, period_seconds=10)

    async def scenario():
        scheduler.enable()
        await asyncio.sleep(0.05)
        flow.select_hour(13)
        remaining = scheduler.countdown()
        scheduler.stop()
        return remaining

    assert asyncio.run(scenario()) > 9.97


def test_hour_switch_while_disabled_starts_nothing(store, flow):
    scheduler = ReflectionScheduler(store, flow, period_seconds=0.05)

    async def scenario():
        flow.select_hour(13)
        assert not scheduler.running
        await asyncio.sleep(0.08)

    asyncio.run(scenario())
    assert scheduler.fire_count == 0


def test_detached_flow_no_longer_restarts_timer(store, flow):
    scheduler = ReflectionScheduler(store, flow, period_seconds=0.05)
    scheduler.detach()

    async def scenario():
        scheduler.enable()
        flow.select_hour(13)
        await asyncio.sleep(0.08)
        scheduler.stop()

    asyncio.run(scenario())
    assert scheduler.fire_count >= 1
