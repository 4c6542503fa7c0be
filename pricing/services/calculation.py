import logging
from dataclasses import dataclass
from decimal import Decimal, ROUND_HALF_UP

from pricing.constants import (
    CM3_PER_M3,
    KG_PER_TONNE,
    CargoType,
    ChargeableUnit,
    Priority,
    TransportMode,
)
from pricing.exceptions import EmptyPackageList, InvalidDimensions, InvalidQuantity, InvalidWeight
from pricing.services.delivery import estimate_delivery_days
from pricing.services.location_mapping import normalize_country_code
from pricing.services.providers import (
    PricingConfigProvider,
    RateResolver,
    get_config_provider,
    get_rate_resolver,
)
from pricing.services.rates import select_rate
from pricing.services.snapshots import ONE, ZERO, PricingConfigSnapshot, surcharge_coefficient, to_decimal

logger = logging.getLogger(__name__)


TWO_DEC = Decimal("0.01")
THREE_DEC = Decimal("0.001")
FOUR_DEC = Decimal("0.0001")


def quantize(value: Decimal, unit: Decimal) -> Decimal:
    return value.quantize(unit, rounding=ROUND_HALF_UP)


@dataclass(frozen=True)
class Route:
    origin: str
    destination: str

    @property
    def label(self) -> str:
        return f"{self.origin} → {self.destination}"


@dataclass
class PricingInput:
    real_weight_kg: Decimal
    mode: TransportMode
    origin_code: str
    destination_code: str
    length_cm: Decimal | None = None
    width_cm: Decimal | None = None
    height_cm: Decimal | None = None
    priority: Priority = Priority.STANDARD
    cargo_type: CargoType | None = None


@dataclass(frozen=True)
class ChargeableWeight:
    volume_m3: Decimal
    volumetric_weight_kg: Decimal
    chargeable_weight: Decimal
    unit: ChargeableUnit
    billed_on_volume: bool


@dataclass(frozen=True)
class SurchargeBreakdown:
    base_cost: Decimal
    cargo_coefficient: Decimal
    cargo_surcharge: Decimal
    subtotal: Decimal
    priority_fraction: Decimal
    priority_coefficient: Decimal
    priority_surcharge: Decimal
    final_price: Decimal


@dataclass
class PricingResult:
    volume_m3: Decimal
    volumetric_weight_kg: Decimal
    chargeable_weight: Decimal
    chargeable_weight_unit: ChargeableUnit
    unit_rate: Decimal
    base_cost: Decimal
    cargo_type: CargoType | None
    cargo_surcharge_coefficient: Decimal
    cargo_surcharge_amount: Decimal
    priority: Priority
    priority_coefficient: Decimal
    priority_surcharge_amount: Decimal
    final_price: Decimal
    currency: str
    route: Route
    mode: TransportMode
    billed_on_volume: bool
    route_rate_used: bool
    estimated_delivery_days: int


@dataclass
class PackageLine:
    weight_kg: Decimal
    quantity: int = 1
    cargo_type: CargoType = CargoType.GENERAL
    length_cm: Decimal | None = None
    width_cm: Decimal | None = None
    height_cm: Decimal | None = None
    description: str = ""


@dataclass
class MultiPackageInput:
    packages: list[PackageLine]
    mode: TransportMode
    origin_code: str
    destination_code: str
    priority: Priority = Priority.STANDARD


@dataclass
class PackageLineResult:
    description: str
    quantity: int
    cargo_type: CargoType
    weight_kg: Decimal
    unit_price: Decimal
    line_total: Decimal
    detail: PricingResult


@dataclass
class MultiPackageResult:
    lines: list[PackageLineResult]
    total_package_count: int
    total_weight_kg: Decimal
    total_before_priority: Decimal
    priority_coefficient: Decimal
    total_price: Decimal
    currency: str
    route: Route
    mode: TransportMode
    priority: Priority
    dominant_cargo_type: CargoType
    estimated_delivery_days: int
    route_rate_used: bool = True


def calculate_volume(length_cm, width_cm, height_cm) -> Decimal:
    length, width, height = to_decimal(length_cm), to_decimal(width_cm), to_decimal(height_cm)
    if length <= 0 or width <= 0 or height <= 0:
        raise InvalidDimensions("Todas las dimensiones deben ser estrictamente positivas.")
    return (length * width * height) / CM3_PER_M3


def _resolve_volume(length_cm, width_cm, height_cm) -> Decimal:
    dimensions = [ZERO if value is None else to_decimal(value) for value in (length_cm, width_cm, height_cm)]
    # Sin dimensiones informadas: volumen nulo, no es un error.
    if all(value == 0 for value in dimensions):
        return ZERO
    return calculate_volume(*dimensions)


def _validate_measurements(weight_kg, length_cm, width_cm, height_cm) -> tuple[Decimal, Decimal]:
    weight = to_decimal(weight_kg)
    if weight <= 0:
        raise InvalidWeight("El peso real debe ser estrictamente positivo.")
    return weight, _resolve_volume(length_cm, width_cm, height_cm)


def calculate_chargeable_weight(
    *,
    real_weight_kg: Decimal,
    volume_m3: Decimal,
    mode: str,
    config: PricingConfigSnapshot,
) -> ChargeableWeight:
    use_volumetric = config.uses_volumetric_weight(mode)
    volumetric_weight = volume_m3 * config.volumetric_ratio(mode) if use_volumetric and volume_m3 > 0 else ZERO

    if mode == TransportMode.SEA:
        freight_tons = real_weight_kg / KG_PER_TONNE
        return ChargeableWeight(
            volume_m3=volume_m3,
            volumetric_weight_kg=volumetric_weight,
            chargeable_weight=max(freight_tons, volume_m3),
            unit=ChargeableUnit.FREIGHT_TON,
            billed_on_volume=volume_m3 > freight_tons,
        )

    if use_volumetric:
        return ChargeableWeight(
            volume_m3=volume_m3,
            volumetric_weight_kg=volumetric_weight,
            chargeable_weight=max(real_weight_kg, volumetric_weight),
            unit=ChargeableUnit.KG,
            billed_on_volume=volumetric_weight > real_weight_kg,
        )

    return ChargeableWeight(
        volume_m3=volume_m3,
        volumetric_weight_kg=ZERO,
        chargeable_weight=real_weight_kg,
        unit=ChargeableUnit.KG,
        billed_on_volume=False,
    )


def apply_surcharges(
    *,
    base_cost: Decimal,
    cargo_type: str | None,
    priority: str,
    cargo_type_surcharges: dict[str, Decimal],
    priority_surcharges: dict[str, Decimal],
) -> SurchargeBreakdown:
    cargo_coefficient = surcharge_coefficient(cargo_type_surcharges, cargo_type)
    cargo_surcharge = base_cost * cargo_coefficient
    subtotal = base_cost + cargo_surcharge

    # La prioridad se aplica sobre el subtotal con recargo de mercancia, nunca sobre el costo base.
    priority_fraction = surcharge_coefficient(priority_surcharges, priority)
    priority_coefficient = ONE + priority_fraction
    priority_surcharge = subtotal * priority_fraction

    return SurchargeBreakdown(
        base_cost=base_cost,
        cargo_coefficient=cargo_coefficient,
        cargo_surcharge=cargo_surcharge,
        subtotal=subtotal,
        priority_fraction=priority_fraction,
        priority_coefficient=priority_coefficient,
        priority_surcharge=priority_surcharge,
        final_price=subtotal * priority_coefficient,
    )


def price_single_line(
    pricing_input: PricingInput,
    *,
    config_provider: PricingConfigProvider | None = None,
    rate_resolver: RateResolver | None = None,
) -> PricingResult:
    real_weight, volume_m3 = _validate_measurements(
        pricing_input.real_weight_kg,
        pricing_input.length_cm,
        pricing_input.width_cm,
        pricing_input.height_cm,
    )

    mode = TransportMode(pricing_input.mode)
    priority = Priority(pricing_input.priority or Priority.STANDARD)
    cargo_type = CargoType(pricing_input.cargo_type) if pricing_input.cargo_type else None
    route = Route(
        origin=normalize_country_code(pricing_input.origin_code),
        destination=normalize_country_code(pricing_input.destination_code),
    )

    config = (config_provider or get_config_provider()).get_pricing_config()
    chargeable = calculate_chargeable_weight(
        real_weight_kg=real_weight,
        volume_m3=volume_m3,
        mode=mode,
        config=config,
    )

    transport_rate = (rate_resolver or get_rate_resolver()).get_transport_rate(route.origin, route.destination, mode)
    selection = select_rate(
        transport_rate=transport_rate,
        config=config,
        mode=mode,
        chargeable_unit=chargeable.unit,
        origin=route.origin,
        destination=route.destination,
    )

    breakdown = apply_surcharges(
        base_cost=chargeable.chargeable_weight * selection.unit_rate,
        cargo_type=cargo_type,
        priority=priority,
        cargo_type_surcharges=selection.cargo_type_surcharges,
        priority_surcharges=selection.priority_surcharges,
    )

    logger.debug(
        "Calculo %s (%s): masa tasable %s %s, tarifa %s, total %s %s",
        route.label,
        mode,
        chargeable.chargeable_weight,
        chargeable.unit,
        selection.unit_rate,
        breakdown.final_price,
        config.currency,
    )

    # Cada campo se redondea por separado; la suma redondeada puede diferir del total en 0.01.
    return PricingResult(
        volume_m3=quantize(chargeable.volume_m3, THREE_DEC),
        volumetric_weight_kg=quantize(chargeable.volumetric_weight_kg, TWO_DEC),
        chargeable_weight=quantize(chargeable.chargeable_weight, TWO_DEC),
        chargeable_weight_unit=chargeable.unit,
        unit_rate=quantize(selection.unit_rate, FOUR_DEC),
        base_cost=quantize(breakdown.base_cost, TWO_DEC),
        cargo_type=cargo_type,
        cargo_surcharge_coefficient=breakdown.cargo_coefficient,
        cargo_surcharge_amount=quantize(breakdown.cargo_surcharge, TWO_DEC),
        priority=priority,
        priority_coefficient=breakdown.priority_coefficient,
        priority_surcharge_amount=quantize(breakdown.priority_surcharge, TWO_DEC),
        final_price=quantize(breakdown.final_price, TWO_DEC),
        currency=config.currency,
        route=route,
        mode=mode,
        billed_on_volume=chargeable.billed_on_volume,
        route_rate_used=selection.route_rate_used,
        estimated_delivery_days=estimate_delivery_days(mode=mode, priority=priority, config=config),
    )


def price_multiple_packages(
    multi_input: MultiPackageInput,
    *,
    config_provider: PricingConfigProvider | None = None,
    rate_resolver: RateResolver | None = None,
) -> MultiPackageResult:
    if not multi_input.packages:
        raise EmptyPackageList("Se requiere al menos un bulto para el calculo.")
    for package in multi_input.packages:
        if isinstance(package.quantity, bool) or not isinstance(package.quantity, int) or package.quantity < 1:
            raise InvalidQuantity("La cantidad de cada linea debe ser un entero mayor o igual a 1.")
        _validate_measurements(package.weight_kg, package.length_cm, package.width_cm, package.height_cm)

    config_provider = config_provider or get_config_provider()
    rate_resolver = rate_resolver or get_rate_resolver()
    priority = Priority(multi_input.priority or Priority.STANDARD)

    lines: list[PackageLineResult] = []
    total_before_priority = ZERO
    total_weight = ZERO
    total_package_count = 0
    cargo_quantities: dict[CargoType, int] = {}

    for package in multi_input.packages:
        cargo_type = CargoType(package.cargo_type or CargoType.GENERAL)
        # Prioridad STANDARD por linea: el recargo de prioridad se aplica una sola vez al total.
        detail = price_single_line(
            PricingInput(
                real_weight_kg=package.weight_kg,
                length_cm=package.length_cm,
                width_cm=package.width_cm,
                height_cm=package.height_cm,
                mode=multi_input.mode,
                priority=Priority.STANDARD,
                cargo_type=cargo_type,
                origin_code=multi_input.origin_code,
                destination_code=multi_input.destination_code,
            ),
            config_provider=config_provider,
            rate_resolver=rate_resolver,
        )
        unit_price = detail.final_price
        line_total = unit_price * package.quantity

        lines.append(
            PackageLineResult(
                description=package.description,
                quantity=package.quantity,
                cargo_type=cargo_type,
                weight_kg=to_decimal(package.weight_kg),
                unit_price=quantize(unit_price, TWO_DEC),
                line_total=quantize(line_total, TWO_DEC),
                detail=detail,
            )
        )
        total_before_priority += line_total
        total_weight += to_decimal(package.weight_kg) * package.quantity
        total_package_count += package.quantity
        cargo_quantities[cargo_type] = cargo_quantities.get(cargo_type, 0) + package.quantity

    priority_coefficient = ONE
    if priority != Priority.STANDARD:
        reference = price_single_line(
            PricingInput(
                real_weight_kg=lines[0].weight_kg,
                mode=multi_input.mode,
                priority=priority,
                cargo_type=CargoType.GENERAL,
                origin_code=multi_input.origin_code,
                destination_code=multi_input.destination_code,
            ),
            config_provider=config_provider,
            rate_resolver=rate_resolver,
        )
        priority_coefficient = reference.priority_coefficient

    # max() conserva el primer tipo encontrado en caso de empate.
    dominant_cargo_type = max(cargo_quantities, key=cargo_quantities.get)
    first_detail = lines[0].detail

    return MultiPackageResult(
        lines=lines,
        total_package_count=total_package_count,
        total_weight_kg=quantize(total_weight, TWO_DEC),
        total_before_priority=quantize(total_before_priority, TWO_DEC),
        priority_coefficient=priority_coefficient,
        total_price=quantize(total_before_priority * priority_coefficient, TWO_DEC),
        currency=first_detail.currency,
        route=first_detail.route,
        mode=first_detail.mode,
        priority=priority,
        dominant_cargo_type=dominant_cargo_type,
        estimated_delivery_days=estimate_delivery_days(
            mode=first_detail.mode,
            priority=priority,
            config=config_provider.get_pricing_config(),
        ),
        route_rate_used=all(line.detail.route_rate_used for line in lines),
    )
