from dataclasses import asdict, is_dataclass
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from enum import Enum
from typing import Any

from pricing.constants import CargoType, ChargeableUnit, Priority
from pricing.services.calculation import MultiPackageResult, PricingResult


UNIT_SYMBOLS = {
    ChargeableUnit.KG: "kg",
    ChargeableUnit.FREIGHT_TON: "TF",
}


def format_number(value, places: int = 2):
    """
    Format number using:
    - thousands separator: dot (.)
    - decimal separator: comma (,)
    - up to `places` decimals (no trailing zeros)
    """
    if value is None or value == "":
        return value

    try:
        number = Decimal(str(value))
    except (InvalidOperation, TypeError, ValueError):
        return value

    rounded = number.quantize(Decimal(1).scaleb(-places), rounding=ROUND_HALF_UP)
    sign = "-" if rounded < 0 else ""
    abs_rounded = abs(rounded)
    if places == 0:
        integer_part, decimal_part = format(abs_rounded, "f"), ""
    else:
        integer_part, decimal_part = format(abs_rounded, "f").split(".")

    integer_formatted = f"{int(integer_part):,}".replace(",", ".")
    decimal_trimmed = decimal_part.rstrip("0")

    if decimal_trimmed:
        return f"{sign}{integer_formatted},{decimal_trimmed}"
    return f"{sign}{integer_formatted}"


def _signed_amount(value: Decimal) -> str:
    formatted = format_number(value)
    return formatted if value < 0 else f"+{formatted}"


def _percent(coefficient: Decimal) -> int:
    return int((coefficient * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def format_pricing_result(result: PricingResult) -> dict:
    currency = result.currency
    symbol = UNIT_SYMBOLS[result.chargeable_weight_unit]

    details = [
        f"Ruta: {result.route.label}",
        f"Volumen: {format_number(result.volume_m3, places=3)} m3",
        f"Peso volumetrico: {format_number(result.volumetric_weight_kg)} kg",
        f"Masa tasable: {format_number(result.chargeable_weight)} {symbol}",
        f"Tarifa: {format_number(result.unit_rate, places=4)} {currency}/{symbol}",
        f"Costo base: {format_number(result.base_cost)} {currency}",
    ]
    if result.cargo_type and result.cargo_surcharge_amount != 0:
        details.append(
            f"Recargo {CargoType(result.cargo_type).label} ({_percent(result.cargo_surcharge_coefficient):+d}%): "
            f"{_signed_amount(result.cargo_surcharge_amount)} {currency}"
        )
    if result.priority_coefficient != 1:
        details.append(
            f"Recargo prioridad {Priority(result.priority).label} ({_percent(result.priority_coefficient - 1):+d}%): "
            f"{_signed_amount(result.priority_surcharge_amount)} {currency}"
        )
    details.append(f"Plazo estimado: {result.estimated_delivery_days} dias")

    alerts = []
    if result.billed_on_volume:
        alerts.append("Facturacion por volumen: la carga es liviana y voluminosa, se cobra por su volumen.")
    if result.chargeable_weight_unit == ChargeableUnit.FREIGHT_TON:
        alerts.append("Maritimo: el precio se calcula en toneladas flete (1 TF = MAX(1 tonelada, 1 m3)).")
    if not result.route_rate_used:
        alerts.append("Tarifa estimada: la ruta aun no esta configurada, se usan las tarifas por defecto.")
    if result.cargo_type == CargoType.DANGEROUS:
        alerts.append("Mercancia peligrosa: transporte sujeto a normativa ADR/IMDG, se requieren documentos especiales.")
    elif result.cargo_type == CargoType.PERISHABLE:
        alerts.append("Mercancia perecedera: transporte con temperatura controlada.")

    return {
        "total": f"{format_number(result.final_price)} {currency}",
        "details": details,
        "alerts": alerts,
    }


def _json_safe(value: Any) -> Any:
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, Decimal):
        return str(value)
    if isinstance(value, (list, tuple)):
        return [_json_safe(item) for item in value]
    if isinstance(value, dict):
        return {str(k): _json_safe(v) for k, v in value.items()}
    return value


def serialize_result(result: PricingResult | MultiPackageResult) -> dict:
    if not is_dataclass(result):
        raise TypeError("Solo se pueden serializar resultados de calculo.")
    payload = _json_safe(asdict(result))
    payload["route"]["label"] = result.route.label
    return payload
