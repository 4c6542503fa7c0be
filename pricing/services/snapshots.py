from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any

from pricing.constants import DEFAULT_CURRENCY, TransportMode


ZERO = Decimal("0")
ONE = Decimal("1")


def to_decimal(value: Any) -> Decimal:
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


def _decimal_table(raw: dict | None) -> dict[str, Decimal]:
    return {str(key).upper(): to_decimal(value) for key, value in (raw or {}).items()}


@dataclass(frozen=True)
class DeliverySpeed:
    min_days: int
    max_days: int


@dataclass(frozen=True)
class PricingConfigSnapshot:
    default_rate_per_kg: Decimal
    default_rate_per_m3: Decimal
    volumetric_weight_ratios: dict[str, Decimal] = field(default_factory=dict)
    use_volumetric_weight_per_mode: dict[str, bool] = field(default_factory=dict)
    transport_multipliers: dict[str, Decimal] = field(default_factory=dict)
    cargo_type_surcharges: dict[str, Decimal] = field(default_factory=dict)
    priority_surcharges: dict[str, Decimal] = field(default_factory=dict)
    delivery_speeds_per_mode: dict[str, DeliverySpeed] = field(default_factory=dict)
    currency: str = DEFAULT_CURRENCY

    @classmethod
    def from_dict(cls, data: dict) -> "PricingConfigSnapshot":
        speeds = {
            str(mode).upper(): DeliverySpeed(min_days=int(speed["min"]), max_days=int(speed["max"]))
            for mode, speed in (data.get("delivery_speeds_per_mode") or {}).items()
        }
        return cls(
            default_rate_per_kg=to_decimal(data["default_rate_per_kg"]),
            default_rate_per_m3=to_decimal(data["default_rate_per_m3"]),
            volumetric_weight_ratios=_decimal_table(data.get("volumetric_weight_ratios")),
            use_volumetric_weight_per_mode={
                str(mode).upper(): bool(enabled)
                for mode, enabled in (data.get("use_volumetric_weight_per_mode") or {}).items()
            },
            transport_multipliers=_decimal_table(data.get("transport_multipliers")),
            cargo_type_surcharges=_decimal_table(data.get("cargo_type_surcharges")),
            priority_surcharges=_decimal_table(data.get("priority_surcharges")),
            delivery_speeds_per_mode=speeds,
            currency=data.get("currency") or DEFAULT_CURRENCY,
        )

    def volumetric_ratio(self, mode: str) -> Decimal:
        return self.volumetric_weight_ratios.get(str(mode), ZERO)

    def uses_volumetric_weight(self, mode: str) -> bool:
        return self.use_volumetric_weight_per_mode.get(str(mode), False)

    def transport_multiplier(self, mode: str) -> Decimal:
        return self.transport_multipliers.get(str(mode), ONE)

    def delivery_speed(self, mode: str) -> DeliverySpeed | None:
        return self.delivery_speeds_per_mode.get(str(mode))


@dataclass(frozen=True)
class TransportRateSnapshot:
    origin_code: str
    destination_code: str
    mode: TransportMode
    rate_per_kg: Decimal
    rate_per_m3: Decimal
    is_active: bool = True
    cargo_type_surcharges: dict[str, Decimal] | None = None
    priority_surcharges: dict[str, Decimal] | None = None

    @classmethod
    def build(
        cls,
        *,
        origin_code: str,
        destination_code: str,
        mode: str,
        rate_per_kg,
        rate_per_m3,
        is_active: bool = True,
        cargo_type_surcharges: dict | None = None,
        priority_surcharges: dict | None = None,
    ) -> "TransportRateSnapshot":
        return cls(
            origin_code=origin_code.strip().upper(),
            destination_code=destination_code.strip().upper(),
            mode=TransportMode(mode),
            rate_per_kg=to_decimal(rate_per_kg),
            rate_per_m3=to_decimal(rate_per_m3),
            is_active=is_active,
            cargo_type_surcharges=_decimal_table(cargo_type_surcharges) if cargo_type_surcharges else None,
            priority_surcharges=_decimal_table(priority_surcharges) if priority_surcharges else None,
        )


def surcharge_coefficient(table: dict[str, Decimal], key: str | None) -> Decimal:
    # Clave ausente o desconocida: sin recargo.
    if not key:
        return ZERO
    return table.get(str(key), ZERO)
