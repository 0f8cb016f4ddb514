"""
Check-in notification system: scheduling and web push delivery.

Public API:
    run_ping_cycle(now=None) - Run one cron pass over groups and solo users
    send_to_one(subscription, payload) - Deliver to a single subscription
    send_to_user(user, payload, rate_limiter=None) - Deliver to a user's devices
    send_to_group(group_id, payload, quiet_start, quiet_end) - Fan out to a group
    init_scheduler() / shutdown_scheduler() - Optional in-process trigger
"""

from .cron import run_ping_cycle
from .dispatcher import DeliveryResult, send_to_group, send_to_one, send_to_user
from .scheduler import init_scheduler, shutdown_scheduler

__all__ = [
    "run_ping_cycle",
    "DeliveryResult",
    "send_to_one",
    "send_to_user",
    "send_to_group",
    "init_scheduler",
    "shutdown_scheduler",
]
