"""Utility modules for cross-cutting concerns."""

from utils.timezone import now_utc, today_utc, to_utc
from utils.actor_context import (
    get_current_actor_id,
    peek_current_actor_id,
    set_current_actor_id,
    clear_current_actor_id,
    actor_context,
)
