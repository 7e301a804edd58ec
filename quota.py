"""Daily post quota and harvest-cycle countdown.

Day rollover is decided by the caller: it passes the current day key and a
counter stored under an older day simply reads as 0.
"""

import math
import time

from config import DAILY_LIMIT, HARVEST_DAYS


DAY_MS = 24 * 60 * 60 * 1000


def can_post(used_today: int, limit: int = DAILY_LIMIT) -> bool:
    return used_today < limit


def record_post(used_today: int) -> int:
    return used_today + 1


def now_ms() -> int:
    return int(time.time() * 1000)


def days_remaining(cycle_start_ms: int, now: int | None = None, cycle_days: int = HARVEST_DAYS) -> int:
    if now is None:
        now = now_ms()
    diff = max(0, cycle_start_ms + cycle_days * DAY_MS - now)
    return math.ceil(diff / DAY_MS)


def daily_used_key(context_id: str) -> str:
    return f"dailyUsed:{context_id}"


def cycle_start_key(context_id: str) -> str:
    return f"cycleStart:{context_id}"


def shadow_key(context_id: str) -> str:
    return f"shadow:{context_id}"


class QuotaTracker:
    def __init__(self, gateway, limit: int = DAILY_LIMIT):
        self.gateway = gateway
        self.limit = limit

    def used_today(self, context_id: str, day: str) -> int:
        state = self.gateway.get_value(daily_used_key(context_id)) or {}
        if state.get("day") != day:
            return 0
        return int(state.get("used") or 0)

    def can_post(self, context_id: str, day: str) -> bool:
        return can_post(self.used_today(context_id, day), self.limit)

    def record_post(self, context_id: str, day: str) -> int:
        used = record_post(self.used_today(context_id, day))
        self.gateway.set_value(daily_used_key(context_id), {"day": day, "used": used})
        return used

    def cycle_start(self, context_id: str) -> int:
        start = self.gateway.get_value(cycle_start_key(context_id))
        if start is None:
            start = now_ms()
            self.gateway.set_value(cycle_start_key(context_id), start)
        return int(start)

    def days_left(self, context_id: str, now: int | None = None) -> int:
        return days_remaining(self.cycle_start(context_id), now)

    def shadow_total(self, context_id: str) -> int:
        return int(self.gateway.get_value(shadow_key(context_id), 0) or 0)
