from datetime import date
from decimal import Decimal

from django.conf import settings
from django.core.exceptions import ValidationError
from django.core.validators import MinValueValidator
from django.db import models
from django.db.models import Q

from .constants import DEFAULT_CURRENCY, CargoType, Priority, TransportMode
from .services.snapshots import PricingConfigSnapshot, TransportRateSnapshot


MODE_KEYS = set(TransportMode.values)
CARGO_KEYS = set(CargoType.values)
PRIORITY_KEYS = set(Priority.values)

MULTIPLIER_RANGE = (Decimal("0.1"), Decimal("10"))
SURCHARGE_RANGE = (Decimal("-1"), Decimal("5"))
ROUTE_SURCHARGE_RANGE = (Decimal("-5"), Decimal("5"))


def _validate_table(errors: dict, field_name: str, table, allowed_keys: set[str], bounds: tuple | None = None) -> None:
    if not isinstance(table, dict):
        errors[field_name] = "Debe ser un objeto JSON."
        return
    unknown = sorted(set(table) - allowed_keys)
    if unknown:
        errors[field_name] = f"Claves no reconocidas: {', '.join(unknown)}."
        return
    for key, value in table.items():
        try:
            number = Decimal(str(value))
        except ArithmeticError:
            errors[field_name] = f"El valor de {key} no es numerico."
            return
        if not number.is_finite():
            errors[field_name] = f"El valor de {key} no es finito."
            return
        if bounds is None:
            if number <= 0:
                errors[field_name] = f"El valor de {key} debe ser positivo."
                return
        elif not bounds[0] <= number <= bounds[1]:
            errors[field_name] = f"El valor de {key} debe estar entre {bounds[0]} y {bounds[1]}."
            return


class PricingConfig(models.Model):
    default_rate_per_kg = models.DecimalField(
        max_digits=12,
        decimal_places=4,
        validators=[MinValueValidator(Decimal("0.01"))],
    )
    default_rate_per_m3 = models.DecimalField(
        max_digits=12,
        decimal_places=4,
        validators=[MinValueValidator(Decimal("0.01"))],
    )
    currency = models.CharField(max_length=3, default=DEFAULT_CURRENCY)
    volumetric_weight_ratios = models.JSONField(default=dict)
    use_volumetric_weight_per_mode = models.JSONField(default=dict)
    transport_multipliers = models.JSONField(default=dict)
    cargo_type_surcharges = models.JSONField(default=dict)
    priority_surcharges = models.JSONField(default=dict)
    delivery_speeds_per_mode = models.JSONField(default=dict, blank=True)
    updated_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="updated_pricing_configs",
    )
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["-created_at", "-id"]
        verbose_name = "Configuracion de precios"
        verbose_name_plural = "Configuracion de precios"

    def __str__(self) -> str:
        return f"Configuracion de precios #{self.pk}"

    def clean(self):
        errors = {}
        _validate_table(errors, "volumetric_weight_ratios", self.volumetric_weight_ratios, MODE_KEYS)
        _validate_table(errors, "transport_multipliers", self.transport_multipliers, MODE_KEYS, MULTIPLIER_RANGE)
        _validate_table(errors, "cargo_type_surcharges", self.cargo_type_surcharges, CARGO_KEYS, SURCHARGE_RANGE)
        _validate_table(errors, "priority_surcharges", self.priority_surcharges, PRIORITY_KEYS, SURCHARGE_RANGE)

        flags = self.use_volumetric_weight_per_mode
        if not isinstance(flags, dict) or set(flags) - MODE_KEYS:
            errors["use_volumetric_weight_per_mode"] = "Debe indicar un booleano por modo de transporte."
        elif any(not isinstance(value, bool) for value in flags.values()):
            errors["use_volumetric_weight_per_mode"] = "Los valores deben ser booleanos."

        speeds = self.delivery_speeds_per_mode
        if not isinstance(speeds, dict) or set(speeds) - MODE_KEYS:
            errors["delivery_speeds_per_mode"] = "Debe indicar un plazo por modo de transporte."
        else:
            for mode, speed in speeds.items():
                try:
                    low, high = int(speed["min"]), int(speed["max"])
                except (KeyError, TypeError, ValueError):
                    errors["delivery_speeds_per_mode"] = f"Plazo invalido para {mode}."
                    break
                if low < 1 or high < low:
                    errors["delivery_speeds_per_mode"] = f"El plazo maximo de {mode} debe ser mayor o igual al minimo."
                    break

        if errors:
            raise ValidationError(errors)

    def save(self, *args, **kwargs):
        from .services.providers import invalidate_pricing_config_cache

        self.currency = (self.currency or DEFAULT_CURRENCY).upper()
        self.full_clean()
        super().save(*args, **kwargs)
        invalidate_pricing_config_cache()

    def delete(self, *args, **kwargs):
        from .services.providers import invalidate_pricing_config_cache

        result = super().delete(*args, **kwargs)
        invalidate_pricing_config_cache()
        return result

    def to_snapshot(self) -> PricingConfigSnapshot:
        return PricingConfigSnapshot.from_dict(
            {
                "default_rate_per_kg": self.default_rate_per_kg,
                "default_rate_per_m3": self.default_rate_per_m3,
                "currency": self.currency,
                "volumetric_weight_ratios": self.volumetric_weight_ratios,
                "use_volumetric_weight_per_mode": self.use_volumetric_weight_per_mode,
                "transport_multipliers": self.transport_multipliers,
                "cargo_type_surcharges": self.cargo_type_surcharges,
                "priority_surcharges": self.priority_surcharges,
                "delivery_speeds_per_mode": self.delivery_speeds_per_mode,
            }
        )


class TransportRate(models.Model):
    origin_country_code = models.CharField(max_length=2)
    destination_country_code = models.CharField(max_length=2)
    transport_mode = models.CharField(max_length=10, choices=TransportMode.choices)
    rate_per_kg = models.DecimalField(max_digits=12, decimal_places=4, validators=[MinValueValidator(Decimal("0.01"))])
    rate_per_m3 = models.DecimalField(max_digits=12, decimal_places=4, validators=[MinValueValidator(Decimal("0.01"))])
    cargo_type_surcharges = models.JSONField(null=True, blank=True)
    priority_surcharges = models.JSONField(null=True, blank=True)
    is_active = models.BooleanField(default=True)
    effective_from = models.DateField()
    effective_to = models.DateField(null=True, blank=True)
    notes = models.CharField(max_length=500, blank=True, default="")
    updated_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="updated_transport_rates",
    )
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["origin_country_code", "destination_country_code", "transport_mode", "-effective_from", "-id"]
        constraints = [
            models.UniqueConstraint(
                fields=["origin_country_code", "destination_country_code", "transport_mode"],
                condition=Q(is_active=True, effective_to__isnull=True),
                name="uniq_open_active_transport_rate",
            )
        ]

    def __str__(self) -> str:
        return f"{self.origin_country_code}->{self.destination_country_code} {self.transport_mode} {self.effective_from}"

    def clean(self):
        errors = {}
        origin = (self.origin_country_code or "").upper()
        destination = (self.destination_country_code or "").upper()
        if origin and origin == destination:
            errors["destination_country_code"] = "El pais de origen y de destino deben ser diferentes."
        if self.effective_to and self.effective_from and self.effective_to < self.effective_from:
            errors["effective_to"] = "La fecha de fin debe ser posterior a la fecha de inicio."
        if self.cargo_type_surcharges is not None:
            _validate_table(errors, "cargo_type_surcharges", self.cargo_type_surcharges, CARGO_KEYS, ROUTE_SURCHARGE_RANGE)
        if self.priority_surcharges is not None:
            _validate_table(errors, "priority_surcharges", self.priority_surcharges, PRIORITY_KEYS, ROUTE_SURCHARGE_RANGE)
        if errors:
            raise ValidationError(errors)

    def save(self, *args, **kwargs):
        from .services.providers import invalidate_transport_rate_cache

        self.origin_country_code = (self.origin_country_code or "").strip().upper()
        self.destination_country_code = (self.destination_country_code or "").strip().upper()
        if not self.effective_from:
            self.effective_from = date.today()
        self.full_clean()

        # Si se edita la ruta o el modo, la clave anterior tambien queda obsoleta.
        previous_key = None
        if self.pk:
            previous_key = (
                TransportRate.objects.filter(pk=self.pk)
                .values_list("origin_country_code", "destination_country_code", "transport_mode")
                .first()
            )

        super().save(*args, **kwargs)
        invalidate_transport_rate_cache(
            origin=self.origin_country_code,
            destination=self.destination_country_code,
            mode=self.transport_mode,
        )
        if previous_key and previous_key != (self.origin_country_code, self.destination_country_code, self.transport_mode):
            invalidate_transport_rate_cache(origin=previous_key[0], destination=previous_key[1], mode=previous_key[2])

    def delete(self, *args, **kwargs):
        from .services.providers import invalidate_transport_rate_cache

        key = (self.origin_country_code, self.destination_country_code, self.transport_mode)
        result = super().delete(*args, **kwargs)
        invalidate_transport_rate_cache(origin=key[0], destination=key[1], mode=key[2])
        return result

    def to_snapshot(self) -> TransportRateSnapshot:
        return TransportRateSnapshot.build(
            origin_code=self.origin_country_code,
            destination_code=self.destination_country_code,
            mode=self.transport_mode,
            rate_per_kg=self.rate_per_kg,
            rate_per_m3=self.rate_per_m3,
            is_active=self.is_active,
            cargo_type_surcharges=self.cargo_type_surcharges,
            priority_surcharges=self.priority_surcharges,
        )
