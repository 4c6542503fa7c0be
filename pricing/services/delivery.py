import math
from decimal import Decimal, ROUND_HALF_UP

from pricing.constants import DEFAULT_DELIVERY_DAYS
from pricing.services.snapshots import PricingConfigSnapshot


PRIORITY_DELAY_FACTORS = {
    "NORMAL": Decimal("0.8"),
    "EXPRESS": Decimal("0.6"),
    "URGENT": Decimal("0.4"),
}


def estimate_delivery_days(*, mode: str, priority: str, config: PricingConfigSnapshot) -> int:
    speed = config.delivery_speed(mode)
    if speed is None:
        return DEFAULT_DELIVERY_DAYS

    days = (Decimal(speed.min_days + speed.max_days) / 2).quantize(Decimal("1"), rounding=ROUND_HALF_UP)
    factor = PRIORITY_DELAY_FACTORS.get(str(priority))
    if factor is not None:
        days = math.ceil(days * factor)
    return max(1, int(days))
