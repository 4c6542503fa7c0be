import logging
from dataclasses import dataclass
from decimal import Decimal

from pricing.constants import ChargeableUnit
from pricing.services.snapshots import PricingConfigSnapshot, TransportRateSnapshot

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RateSelection:
    unit_rate: Decimal
    route_rate_used: bool
    cargo_type_surcharges: dict[str, Decimal]
    priority_surcharges: dict[str, Decimal]


def select_rate(
    *,
    transport_rate: TransportRateSnapshot | None,
    config: PricingConfigSnapshot,
    mode: str,
    chargeable_unit: str,
    origin: str = "",
    destination: str = "",
) -> RateSelection:
    # Solo la tonelada flete maritima se cobra por m3: el peso volumetrico aereo/terrestre ya esta en kg.
    per_m3 = chargeable_unit == ChargeableUnit.FREIGHT_TON

    if transport_rate is not None and transport_rate.is_active:
        return RateSelection(
            unit_rate=transport_rate.rate_per_m3 if per_m3 else transport_rate.rate_per_kg,
            route_rate_used=True,
            cargo_type_surcharges=(
                transport_rate.cargo_type_surcharges
                if transport_rate.cargo_type_surcharges is not None
                else config.cargo_type_surcharges
            ),
            priority_surcharges=(
                transport_rate.priority_surcharges
                if transport_rate.priority_surcharges is not None
                else config.priority_surcharges
            ),
        )

    default_rate = config.default_rate_per_m3 if per_m3 else config.default_rate_per_kg
    unit_rate = default_rate * config.transport_multiplier(mode)
    logger.warning(
        "No hay tarifa configurada para %s -> %s (%s). Se usa la tarifa por defecto: %s %s.",
        origin,
        destination,
        mode,
        unit_rate,
        config.currency,
    )
    return RateSelection(
        unit_rate=unit_rate,
        route_rate_used=False,
        cargo_type_surcharges=config.cargo_type_surcharges,
        priority_surcharges=config.priority_surcharges,
    )
