#!/usr/bin/env python3
"""Win The Hour TUI — log each hour from the terminal, powered by Textual."""

from __future__ import annotations

import logging
import sys

from textual import on
from textual.app import App, ComposeResult
from textual.binding import Binding
from textual.containers import Horizontal, Vertical, VerticalScroll
from textual.widgets import DataTable, Footer, Header, Input, Label, Static

from wth import (
    CheckInFlow,
    FlowState,
    InvalidTransition,
    RecordStore,
    ReflectionScheduler,
    format_hour,
    hour_board,
    load_partners,
    load_profile,
    now_local,
    summarize,
    win_streak,
    workspace_root,
)


PROMPTS = {
    FlowState.ASK: "Did you win this hour?  [w] yes  [l] no",
    FlowState.PLAN: "What's the plan for the next hour? (Enter to submit)",
    FlowState.LOSS_REASON: "Why did you not win? (Enter to continue)",
    FlowState.RATE: "How hard did it hit?  [1]-[5]",
    FlowState.DONE_EXISTING: "Logged.  [r] re-log",
    FlowState.FUTURE: "This hour hasn't happened yet.",
    FlowState.UNAVAILABLE: "Unavailable hour.  [u] make available",
}

STATUS_MARKS = {
    "won": "✔ WON",
    "lost": "✘ LOST",
    "pending": "· pending",
    "unavailable": "— unavailable",
    "future": "",
}


CSS = """
Screen {
    layout: vertical;
}

#main-layout {
    height: 1fr;
}

#left-pane {
    width: 1fr;
    min-width: 30;
    border-right: tall $primary-background-darken-2;
    padding: 0 1;
}

#right-pane {
    width: 1fr;
    min-width: 30;
    padding: 0 1;
}

#hours-table {
    height: 1fr;
}

.section-title {
    text-style: bold;
    color: $text;
    margin: 1 0 0 0;
    padding: 0 1;
}

#flow-prompt, #flow-record, #sponsor-line, #beast-status {
    height: auto;
    padding: 0 1;
}

#sponsor-line, #beast-status {
    color: $text-muted;
}

#flow-input {
    height: 3;
}

.mybed-input {
    height: 3;
}
"""


class WinTheHourApp(App):
    """Win The Hour — interactive hourly check-ins."""

    TITLE = "WTH!"
    CSS = CSS
    AUTO_FOCUS = None

    BINDINGS = [
        Binding("w", "win", "Won"),
        Binding("l", "loss", "Lost"),
        Binding("1", "rate(1)", "1", show=False),
        Binding("2", "rate(2)", "2", show=False),
        Binding("3", "rate(3)", "3", show=False),
        Binding("4", "rate(4)", "4", show=False),
        Binding("5", "rate(5)", "5", show=False),
        Binding("r", "relog", "Re-log"),
        Binding("u", "toggle_unavailable", "Unavailable"),
        Binding("b", "toggle_beast", "BeastMode"),
        Binding("escape", "blur_focus", "Back"),
        Binding("q", "quit_app", "Quit"),
    ]

    def __init__(self) -> None:
        super().__init__()
        self.root_dir = workspace_root()
        self.profile = load_profile(self.root_dir)
        self.store = RecordStore(self.root_dir)
        self.flow = CheckInFlow(
            self.store,
            tier=self.profile.tier,
            partners=load_partners(self.root_dir),
            clock=lambda: now_local(self.root_dir),
        )
        self.scheduler = ReflectionScheduler(
            self.store,
            self.flow,
            period_seconds=self.profile.beast_period_seconds,
            align_to_clock=self.profile.beast_align_to_clock,
            wall_clock=lambda: now_local(self.root_dir),
        )
        self._last_state: FlowState | None = None

    def check_action(self, action: str, parameters: tuple[object, ...]) -> bool | None:
        """Only show the intents the current flow state accepts."""
        intents = {"win": "win", "loss": "loss", "rate": "rate", "relog": "relog"}
        if action in intents:
            return True if intents[action] in self.flow.allowed_intents else None
        return True

    def compose(self) -> ComposeResult:
        yield Header()
        yield Horizontal(
            Vertical(
                Label("Today's hours", classes="section-title"),
                DataTable(id="hours-table", cursor_type="row"),
                id="left-pane",
            ),
            VerticalScroll(
                Label("This hour", classes="section-title"),
                Static(id="flow-prompt"),
                Input(placeholder="…", id="flow-input"),
                Static(id="flow-record"),
                Static(id="sponsor-line"),
                Label("M.Y.B.E.D.", classes="section-title"),
                *[
                    Input(placeholder=f"{i + 1}.", id=f"mybed-{i}", classes="mybed-input")
                    for i in range(6)
                ],
                Static(id="beast-status"),
                id="right-pane",
            ),
            id="main-layout",
        )
        yield Footer()

    def on_mount(self) -> None:
        table = self.query_one("#hours-table", DataTable)
        table.add_columns("Hour", "Status", "Note")
        self.flow.select_hour(now_local(self.root_dir).hour)
        self._load_mybed()
        self._refresh()
        self.scheduler.start()
        self.set_interval(1, self._tick)

    def on_unmount(self) -> None:
        self.scheduler.stop()
        self.scheduler.detach()

    # ── Rendering ──────────────────────────────────────────────

    def _refresh(self) -> None:
        self._rebuild_hours()
        self._render_flow()
        self._render_beast()
        self.refresh_bindings()

    def _rebuild_hours(self) -> None:
        today = self.flow.day or now_local(self.root_dir).date().isoformat()
        records = self.store.records_for(today)
        rows = hour_board(
            records,
            today,
            self.store.load_unavailable(),
            now_local(self.root_dir),
            self.profile.waking_hours,
        )
        table = self.query_one("#hours-table", DataTable)
        cursor = table.cursor_row
        table.clear()
        for row in rows:
            record = row["record"]
            note = ""
            if record is not None:
                note = record.next_hour_plan or record.loss_reason or ""
            table.add_row(row["label"], STATUS_MARKS[row["status"]], note, key=str(row["hour"]))
        hours = [row["hour"] for row in rows]
        if self.flow.hour in hours:
            cursor = hours.index(self.flow.hour)
        if rows:
            table.move_cursor(row=min(cursor, len(rows) - 1))

        stats = summarize(records)
        streak = win_streak(self.store.load_all(), today)
        self.sub_title = f"🔥 {streak}  won {stats['won']}/{stats['logged']}  {stats['win_rate']}%"

    def _render_flow(self) -> None:
        flow = self.flow
        state = flow.state
        hour_label = format_hour(flow.hour) if flow.hour is not None else "?"
        self.query_one("#flow-prompt", Static).update(f"{hour_label}\n{PROMPTS.get(state, '')}")

        flow_input = self.query_one("#flow-input", Input)
        typing = state in (FlowState.PLAN, FlowState.LOSS_REASON)
        flow_input.display = typing
        if state is not self._last_state:
            flow_input.value = ""
            if typing:
                flow_input.focus()
        self._last_state = state

        record_text = ""
        if flow.record is not None:
            r = flow.record
            if r.won:
                record_text = f"WON — next: {r.next_hour_plan or '(no plan)'}"
            else:
                rating = f" ({r.intensity_rating}/5)" if r.intensity_rating else ""
                record_text = f"LOST{rating} — {r.loss_reason or '(no reason)'}"
        self.query_one("#flow-record", Static).update(record_text)

        sponsor = flow.sponsor()
        self.query_one("#sponsor-line", Static).update(
            f"This hour powered by {sponsor.brand_name}. {sponsor.tagline}".strip() if sponsor else ""
        )

    def _render_beast(self) -> None:
        widget = self.query_one("#beast-status", Static)
        remaining = self.scheduler.countdown()
        if remaining is None:
            widget.update("BeastMode: off  [b]")
            return
        minutes, seconds = divmod(int(remaining), 60)
        widget.update(f"BeastMode: next reset in {minutes:02d}:{seconds:02d}  [b]")

    def _tick(self) -> None:
        if self.flow.state is not self._last_state:
            self._refresh()
        else:
            self._render_beast()

    # ── Hour selection ─────────────────────────────────────────

    @on(DataTable.RowSelected, "#hours-table")
    def _on_hour_selected(self, event: DataTable.RowSelected) -> None:
        self.flow.select_hour(int(event.row_key.value))
        self._refresh()

    # ── Flow intents ───────────────────────────────────────────

    def _intent(self, action, *args) -> None:
        try:
            action(*args)
        except InvalidTransition:
            return
        if not self.flow.last_saved:
            self.notify("Check-in not saved", title="Storage", severity="warning")
        self._refresh()

    def action_win(self) -> None:
        self._intent(self.flow.declare_win)

    def action_loss(self) -> None:
        self._intent(self.flow.declare_loss)

    def action_rate(self, rating: int) -> None:
        self._intent(self.flow.rate, rating)

    def action_relog(self) -> None:
        self._intent(self.flow.relog)

    @on(Input.Submitted, "#flow-input")
    def _on_flow_text(self, event: Input.Submitted) -> None:
        if self.flow.state is FlowState.PLAN:
            self._intent(self.flow.submit_plan, event.value)
        elif self.flow.state is FlowState.LOSS_REASON:
            self._intent(self.flow.submit_loss_reason, event.value)

    def action_toggle_unavailable(self) -> None:
        if self.flow.hour is None:
            return
        _, saved = self.store.toggle_unavailable(self.flow.hour)
        if not saved:
            self.notify("Unavailable hours not saved", title="Storage", severity="warning")
        self.flow.select_hour(self.flow.hour, self.flow.day)
        self._refresh()

    def action_toggle_beast(self) -> None:
        if self.scheduler.enabled:
            self.scheduler.disable()
        else:
            self.scheduler.enable()
        self._render_beast()

    # ── MYBED ──────────────────────────────────────────────────

    def _load_mybed(self) -> None:
        items = self.store.load_priorities(self.flow.day)
        for i, text in enumerate(items):
            self.query_one(f"#mybed-{i}", Input).value = text

    @on(Input.Submitted, ".mybed-input")
    def _on_mybed_submit(self, event: Input.Submitted) -> None:
        items = [self.query_one(f"#mybed-{i}", Input).value for i in range(6)]
        if self.store.save_priorities(self.flow.day, items):
            self.notify("M.Y.B.E.D. saved", title="Saved")
        index = int((event.input.id or "mybed-0").removeprefix("mybed-"))
        if index < 5:
            self.query_one(f"#mybed-{index + 1}", Input).focus()
        else:
            self.set_focus(None)

    # ── Misc ───────────────────────────────────────────────────

    def action_blur_focus(self) -> None:
        self.set_focus(None)
        self.refresh_bindings()

    def action_quit_app(self) -> None:
        self.exit()


# ── Entry point ────────────────────────────────────────────────


def main() -> None:
    root = workspace_root()
    if not root.exists():
        print(f"Workspace not found: {root}")
        print("Set WTH_ROOT to your workspace directory.")
        sys.exit(1)

    logging.basicConfig(filename=str(root / "wth.log"), level=logging.INFO)
    app = WinTheHourApp()
    app.run()


if __name__ == "__main__":
    main()
