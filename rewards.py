from decimal import ROUND_HALF_UP, Decimal

from config import BASE_RATE, INTENT_MULTIPLIER


def reward(base_rate: int = BASE_RATE, intent_modifier_active: bool = False) -> int:
    """Points earned by one post.

    Rounds half up: 5 * 1.4 -> 7, 4 * 1.4 = 5.6 -> 6, 3 * 1.4 = 4.2 -> 4.
    Decimal keeps 1.4 exact so no float drift decides the rounding.
    """
    multiplier = Decimal(INTENT_MULTIPLIER) if intent_modifier_active else Decimal("1")
    return int((Decimal(int(base_rate)) * multiplier).quantize(Decimal("1"), rounding=ROUND_HALF_UP))
