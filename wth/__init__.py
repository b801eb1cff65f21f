"""Win The Hour core library — hourly check-in engine.

Public API re-exports for convenient imports:
    from wth import RecordStore, CheckInFlow, ReflectionScheduler, ...
"""

# Workspace & paths
from wth.workspace import (
    workspace_root,
    get_user_timezone,
    load_profile,
    today_str,
    now_local,
    storage_dir,
    profile_path,
    partners_path,
)

# File I/O
from wth.fileio import (
    read_text,
    read_yaml,
    write_text_atomic,
)

# Models
from wth.models import (
    HourResult,
    CheckInRecord,
    HourScope,
    CouponPayload,
    Partner,
    SchedulerState,
    Profile,
    MYBED_SLOTS,
    RATING_SCALE,
)

# Migration
from wth.migrate import RecordDecodeError, detect_shape, migrate

# Storage
from wth.store import KeyValueStorage, RecordStore

# Placement
from wth.placement import (
    is_visible_for_tier,
    load_partners,
    resolve_coupons,
    resolve_for_day,
    resolve_for_hour,
)

# Check-in flow
from wth.flow import CheckInFlow, FlowState, InvalidTransition

# BeastMode
from wth.beast import ReflectionScheduler, countdown_seconds

# Summaries
from wth.summary import format_hour, hour_board, summarize, summarize_range, win_streak
