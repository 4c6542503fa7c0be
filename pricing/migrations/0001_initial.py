from decimal import Decimal

from django.conf import settings
from django.db import migrations, models
import django.core.validators
import django.db.models.deletion


class Migration(migrations.Migration):
    initial = True

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name="PricingConfig",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                (
                    "default_rate_per_kg",
                    models.DecimalField(
                        decimal_places=4,
                        max_digits=12,
                        validators=[django.core.validators.MinValueValidator(Decimal("0.01"))],
                    ),
                ),
                (
                    "default_rate_per_m3",
                    models.DecimalField(
                        decimal_places=4,
                        max_digits=12,
                        validators=[django.core.validators.MinValueValidator(Decimal("0.01"))],
                    ),
                ),
                ("currency", models.CharField(default="EUR", max_length=3)),
                ("volumetric_weight_ratios", models.JSONField(default=dict)),
                ("use_volumetric_weight_per_mode", models.JSONField(default=dict)),
                ("transport_multipliers", models.JSONField(default=dict)),
                ("cargo_type_surcharges", models.JSONField(default=dict)),
                ("priority_surcharges", models.JSONField(default=dict)),
                ("delivery_speeds_per_mode", models.JSONField(blank=True, default=dict)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                (
                    "updated_by",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="updated_pricing_configs",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
            ],
            options={
                "verbose_name": "Configuracion de precios",
                "verbose_name_plural": "Configuracion de precios",
                "ordering": ["-created_at", "-id"],
            },
        ),
        migrations.CreateModel(
            name="TransportRate",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("origin_country_code", models.CharField(max_length=2)),
                ("destination_country_code", models.CharField(max_length=2)),
                (
                    "transport_mode",
                    models.CharField(
                        choices=[("ROAD", "Terrestre"), ("SEA", "Maritimo"), ("AIR", "Aereo"), ("RAIL", "Ferroviario")],
                        max_length=10,
                    ),
                ),
                (
                    "rate_per_kg",
                    models.DecimalField(
                        decimal_places=4,
                        max_digits=12,
                        validators=[django.core.validators.MinValueValidator(Decimal("0.01"))],
                    ),
                ),
                (
                    "rate_per_m3",
                    models.DecimalField(
                        decimal_places=4,
                        max_digits=12,
                        validators=[django.core.validators.MinValueValidator(Decimal("0.01"))],
                    ),
                ),
                ("cargo_type_surcharges", models.JSONField(blank=True, null=True)),
                ("priority_surcharges", models.JSONField(blank=True, null=True)),
                ("is_active", models.BooleanField(default=True)),
                ("effective_from", models.DateField()),
                ("effective_to", models.DateField(blank=True, null=True)),
                ("notes", models.CharField(blank=True, default="", max_length=500)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                (
                    "updated_by",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="updated_transport_rates",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
            ],
            options={
                "ordering": ["origin_country_code", "destination_country_code", "transport_mode", "-effective_from", "-id"],
            },
        ),
        migrations.AddConstraint(
            model_name="transportrate",
            constraint=models.UniqueConstraint(
                condition=models.Q(("effective_to__isnull", True), ("is_active", True)),
                fields=("origin_country_code", "destination_country_code", "transport_mode"),
                name="uniq_open_active_transport_rate",
            ),
        ),
    ]
