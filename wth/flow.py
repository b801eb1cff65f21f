"""Hourly check-in flow: the win/loss decision tree for one active hour.

    ASK --win-->  PLAN --plan--> DONE_EXISTING
    ASK --loss--> LOSS_REASON --reason--> RATE --rating--> DONE_EXISTING
    DONE_EXISTING --relog--> ASK

An hour that already has a record opens in DONE_EXISTING. Hours after the
current wall-clock hour open in FUTURE, hours the user marked unavailable in
UNAVAILABLE; neither accepts any intent.
"""

from __future__ import annotations

import logging
from datetime import datetime
from enum import Enum
from typing import Any, Callable, Sequence

from wth.models import RATING_SCALE, CheckInRecord, HourResult, Partner
from wth.placement import is_paid_tier, resolve_for_hour
from wth.store import RecordStore
from wth.workspace import now_local

logger = logging.getLogger(__name__)


class FlowState(str, Enum):
    ASK = "ask"
    PLAN = "plan"
    LOSS_REASON = "loss_reason"
    RATE = "rate"
    DONE_EXISTING = "done_existing"
    FUTURE = "future"
    UNAVAILABLE = "unavailable"


INERT_STATES = {FlowState.FUTURE, FlowState.UNAVAILABLE}

ALLOWED_INTENTS: dict[FlowState, frozenset[str]] = {
    FlowState.ASK: frozenset({"win", "loss"}),
    FlowState.PLAN: frozenset({"plan"}),
    FlowState.LOSS_REASON: frozenset({"reason"}),
    FlowState.RATE: frozenset({"rate"}),
    FlowState.DONE_EXISTING: frozenset({"relog"}),
    FlowState.FUTURE: frozenset(),
    FlowState.UNAVAILABLE: frozenset(),
}


class InvalidTransition(ValueError):
    """An intent was sent in a state that does not accept it."""


SubmitListener = Callable[[CheckInRecord], None]
SelectListener = Callable[[str, int], None]


class CheckInFlow:
    """State machine for logging one hour.

    ``clock`` returns the current timezone-aware datetime; it decides
    today's date, which hours are still in the future, and the loggedAt
    stamp of new records.
    """

    def __init__(
        self,
        store: RecordStore,
        tier: str = "Freshman",
        partners: Sequence[Partner] = (),
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self.store = store
        self.tier = tier
        self.partners = list(partners)
        self.clock = clock or now_local
        self.day: str | None = None
        self.hour: int | None = None
        self.state: FlowState | None = None
        self.record: CheckInRecord | None = None
        self.last_saved = True
        self._listeners: list[SubmitListener] = []
        self._select_listeners: list[SelectListener] = []
        self._clear_drafts()

    # ── Listeners ─────────────────────────────────────────────

    def add_listener(self, callback: SubmitListener) -> None:
        self._listeners.append(callback)

    def remove_listener(self, callback: SubmitListener) -> None:
        if callback in self._listeners:
            self._listeners.remove(callback)

    def add_select_listener(self, callback: SelectListener) -> None:
        """Call ``callback(day, hour)`` whenever the active hour changes."""
        self._select_listeners.append(callback)

    def remove_select_listener(self, callback: SelectListener) -> None:
        if callback in self._select_listeners:
            self._select_listeners.remove(callback)

    def _notify(self, listeners: list, *args: Any) -> None:
        for listener in list(listeners):
            try:
                listener(*args)
            except Exception:
                logger.exception("Flow listener failed for %s hour %s", self.day, self.hour)

    # ── Selection ─────────────────────────────────────────────

    def _clear_drafts(self) -> None:
        self.result: HourResult | None = None
        self.plan_draft = ""
        self.reason_draft = ""
        self.rating_draft: int | None = None

    def _inert_state(self) -> FlowState | None:
        if self.hour in self.store.load_unavailable():
            return FlowState.UNAVAILABLE
        now = self.clock()
        if (self.day, self.hour) > (now.date().isoformat(), now.hour):
            return FlowState.FUTURE
        return None

    def select_hour(self, hour: int, day: str | None = None) -> FlowState:
        """Make ``hour`` the active hour and pick the initial state for it."""
        if not 0 <= hour <= 23:
            raise ValueError(f"Hour must be 0-23, got {hour}")
        self._clear_drafts()
        self.day = day or self.clock().date().isoformat()
        self.hour = hour
        self.record = None

        inert = self._inert_state()
        if inert is not None:
            self.state = inert
        else:
            self.record = self.store.find(self.day, hour)
            self.state = FlowState.DONE_EXISTING if self.record else FlowState.ASK
        self._notify(self._select_listeners, self.day, hour)
        return self.state

    # ── Introspection ─────────────────────────────────────────

    @property
    def allowed_intents(self) -> frozenset[str]:
        if self.state is None:
            return frozenset()
        return ALLOWED_INTENTS[self.state]

    @property
    def accepts_input(self) -> bool:
        return bool(self.allowed_intents)

    @property
    def can_submit_plan(self) -> bool:
        return self.state is FlowState.PLAN and bool(self.plan_draft.strip())

    @property
    def can_submit_reason(self) -> bool:
        return self.state is FlowState.LOSS_REASON and bool(self.reason_draft.strip())

    def _require(self, intent: str) -> None:
        if intent not in self.allowed_intents:
            state = self.state.value if self.state else "unselected"
            raise InvalidTransition(f"Cannot {intent!r} while {state} (hour {self.hour})")

    # ── Intents ───────────────────────────────────────────────

    def declare_win(self) -> FlowState:
        self._require("win")
        self.result = HourResult.WIN
        self.state = FlowState.PLAN
        return self.state

    def declare_loss(self) -> FlowState:
        self._require("loss")
        self.result = HourResult.LOSS
        self.state = FlowState.LOSS_REASON
        return self.state

    def set_plan(self, text: str) -> None:
        self._require("plan")
        self.plan_draft = text

    def submit_plan(self, text: str | None = None) -> CheckInRecord | None:
        """Submit the next-hour plan. Returns None while the plan is empty."""
        self._require("plan")
        if text is not None:
            self.plan_draft = text
        if not self.can_submit_plan:
            return None
        record = CheckInRecord.win(self.day, self.hour, self.plan_draft.strip(), self._stamp())
        return self._submit(record)

    def set_loss_reason(self, text: str) -> None:
        self._require("reason")
        self.reason_draft = text

    def submit_loss_reason(self, text: str | None = None) -> bool:
        """Move on to rating. Returns False while the reason is empty."""
        self._require("reason")
        if text is not None:
            self.reason_draft = text
        if not self.can_submit_reason:
            return False
        self.state = FlowState.RATE
        return True

    def rate(self, rating: int) -> CheckInRecord:
        """Pick an intensity rating; this submits the loss immediately."""
        self._require("rate")
        if rating not in RATING_SCALE:
            raise ValueError(f"Rating must be 1-5, got {rating!r}")
        self.rating_draft = rating
        record = CheckInRecord.loss(self.day, self.hour, self.reason_draft.strip(), rating, self._stamp())
        return self._submit(record)

    def relog(self) -> FlowState:
        self._require("relog")
        self._clear_drafts()
        self.state = FlowState.ASK
        return self.state

    def force_reset(self) -> FlowState | None:
        """Drop any in-progress answer and go back to the first question.

        Inert hours stay inert; a FUTURE hour whose time has come opens at ASK.
        """
        self._clear_drafts()
        if self.hour is None:
            return None
        inert = self._inert_state()
        self.state = inert if inert is not None else FlowState.ASK
        return self.state

    # ── Submission ────────────────────────────────────────────

    def _stamp(self) -> str:
        return self.clock().isoformat()

    def _submit(self, record: CheckInRecord) -> CheckInRecord:
        self.last_saved = self.store.upsert(record)
        if not self.last_saved:
            logger.warning("Check-in for %s hour %d was not saved", record.date, record.hour)
        self.record = record
        self._clear_drafts()
        self.state = FlowState.DONE_EXISTING
        self._notify(self._listeners, record)
        return record

    # ── Sponsor content ───────────────────────────────────────

    def sponsor(self) -> Partner | None:
        """Hour sponsor line for the active hour; shown on the free tier only."""
        if self.hour is None or self.state in INERT_STATES:
            return None
        if is_paid_tier(self.tier):
            return None
        return resolve_for_hour(self.partners, self.hour, self.tier)

    def snapshot(self) -> dict[str, Any]:
        """Plain-dict view of the flow for front ends."""
        return {
            "date": self.day,
            "hour": self.hour,
            "state": self.state.value if self.state else None,
            "allowedIntents": sorted(self.allowed_intents),
            "result": self.result.value if self.result else None,
            "planDraft": self.plan_draft,
            "reasonDraft": self.reason_draft,
            "canSubmitPlan": self.can_submit_plan,
            "canSubmitReason": self.can_submit_reason,
            "record": self.record.to_dict() if self.record else None,
            "lastSaved": self.last_saved,
        }
