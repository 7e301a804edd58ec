import pytest

from quota import DAY_MS, QuotaTracker, can_post, days_remaining, record_post
from rewards import reward


class TestReward:
    def test_default_rates(self):
        assert reward(5, True) == 7
        assert reward(5, False) == 5

    def test_rounds_half_up_not_banker(self):
        assert reward(4, True) == 6    # 5.6
        assert reward(3, True) == 4    # 4.2
        assert reward(10, True) == 14

    def test_zero_base(self):
        assert reward(0, True) == 0


class TestQuotaPure:
    def test_can_post_below_limit(self):
        assert can_post(0) is True
        assert can_post(2) is True
        assert can_post(3) is False
        assert can_post(1, limit=1) is False

    def test_record_post_increments(self):
        assert record_post(0) == 1
        assert record_post(2) == 3

    @pytest.mark.parametrize(
        "elapsed_ms, expected",
        [
            (0, 9),
            (DAY_MS // 2, 9),
            (DAY_MS, 8),
            (8 * DAY_MS + 1, 1),
            (9 * DAY_MS, 0),
            (30 * DAY_MS, 0),
        ],
    )
    def test_days_remaining(self, elapsed_ms, expected):
        start = 1_700_000_000_000
        assert days_remaining(start, start + elapsed_ms) == expected


class TestQuotaTracker:
    def test_counter_persists_per_day(self, local_gateway):
        quota = QuotaTracker(local_gateway)
        assert quota.used_today("tab-1", "2026-10-19") == 0
        for _ in range(3):
            quota.record_post("tab-1", "2026-10-19")
        assert quota.used_today("tab-1", "2026-10-19") == 3
        assert quota.can_post("tab-1", "2026-10-19") is False

    def test_new_day_key_resets(self, local_gateway):
        quota = QuotaTracker(local_gateway)
        for _ in range(3):
            quota.record_post("tab-1", "2026-10-19")
        assert quota.can_post("tab-1", "2026-10-20") is True
        assert quota.record_post("tab-1", "2026-10-20") == 1

    def test_contexts_are_independent(self, local_gateway):
        quota = QuotaTracker(local_gateway)
        quota.record_post("tab-1", "2026-10-19")
        assert quota.used_today("tab-2", "2026-10-19") == 0

    def test_cycle_start_is_fixed_after_first_read(self, local_gateway):
        quota = QuotaTracker(local_gateway)
        first = quota.cycle_start("tab-1")
        assert quota.cycle_start("tab-1") == first
        assert quota.days_left("tab-1", now=first) == 9
        assert quota.days_left("tab-1", now=first + 9 * DAY_MS) == 0
