from decimal import Decimal

from django.db import models


class TransportMode(models.TextChoices):
    ROAD = "ROAD", "Terrestre"
    SEA = "SEA", "Maritimo"
    AIR = "AIR", "Aereo"
    RAIL = "RAIL", "Ferroviario"


class CargoType(models.TextChoices):
    GENERAL = "GENERAL", "General"
    DANGEROUS = "DANGEROUS", "Peligrosa"
    PERISHABLE = "PERISHABLE", "Perecedera"
    FRAGILE = "FRAGILE", "Fragil"
    BULK = "BULK", "Granel"
    CONTAINER = "CONTAINER", "Contenedor"
    PALLETIZED = "PALLETIZED", "Paletizada"
    OTHER = "OTHER", "Otra"


class Priority(models.TextChoices):
    STANDARD = "STANDARD", "Estandar"
    NORMAL = "NORMAL", "Normal"
    EXPRESS = "EXPRESS", "Expres"
    URGENT = "URGENT", "Urgente"


class ChargeableUnit(models.TextChoices):
    KG = "kg", "Kilogramo"
    FREIGHT_TON = "freight_ton", "Tonelada flete"


DEFAULT_CURRENCY = "EUR"

# Regla W/M maritima: 1 tonelada flete = MAX(1 tonelada, 1 m3).
KG_PER_TONNE = Decimal("1000")
CM3_PER_M3 = Decimal("1000000")

DEFAULT_DELIVERY_DAYS = 7

# Valores usados mientras no exista una configuracion en base de datos.
DEFAULT_PRICING_CONFIG = {
    "default_rate_per_kg": "1.0",
    "default_rate_per_m3": "200.0",
    "currency": DEFAULT_CURRENCY,
    "volumetric_weight_ratios": {
        "AIR": 167,
        "ROAD": 333,
        "SEA": 1,
        "RAIL": 250,
    },
    "use_volumetric_weight_per_mode": {
        "AIR": True,
        "ROAD": True,
        "SEA": False,
        "RAIL": True,
    },
    "transport_multipliers": {
        "ROAD": 1.0,
        "SEA": 0.6,
        "AIR": 3.0,
        "RAIL": 0.8,
    },
    "cargo_type_surcharges": {
        "GENERAL": 0,
        "DANGEROUS": 0.5,
        "PERISHABLE": 0.4,
        "FRAGILE": 0.3,
        "BULK": -0.1,
        "CONTAINER": 0.2,
        "PALLETIZED": 0.15,
        "OTHER": 0.1,
    },
    "priority_surcharges": {
        "STANDARD": 0,
        "NORMAL": 0.1,
        "EXPRESS": 0.5,
        "URGENT": 0.3,
    },
    "delivery_speeds_per_mode": {
        "ROAD": {"min": 3, "max": 7},
        "SEA": {"min": 20, "max": 45},
        "AIR": {"min": 1, "max": 3},
        "RAIL": {"min": 7, "max": 14},
    },
}
