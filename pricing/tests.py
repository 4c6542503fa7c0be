from dataclasses import replace
from datetime import date, timedelta
from decimal import Decimal
from unittest import mock

from django.core.cache import cache
from django.core.exceptions import ImproperlyConfigured, ValidationError
from django.db import IntegrityError, transaction
from django.test import SimpleTestCase, TestCase, override_settings

from .constants import DEFAULT_PRICING_CONFIG, CargoType, ChargeableUnit, Priority, TransportMode
from .exceptions import EmptyPackageList, InvalidDimensions, InvalidQuantity, InvalidWeight, PricingError
from .models import PricingConfig, TransportRate
from .services.calculation import (
    MultiPackageInput,
    PackageLine,
    PricingInput,
    apply_surcharges,
    calculate_chargeable_weight,
    calculate_volume,
    price_multiple_packages,
    price_single_line,
)
from .services.delivery import estimate_delivery_days
from .services.location_mapping import normalize_country_code
from .services.presentation import format_number, format_pricing_result, serialize_result
from .services.providers import (
    DatabasePricingConfigProvider,
    DatabaseRateResolver,
    InMemoryRateResolver,
    StaticPricingConfigProvider,
    get_config_provider,
    get_rate_resolver,
)
from .services.rates import select_rate
from .services.snapshots import PricingConfigSnapshot, TransportRateSnapshot


def fr_bf_air_rate(**overrides):
    data = {
        "origin_code": "FR",
        "destination_code": "BF",
        "mode": TransportMode.AIR,
        "rate_per_kg": "7.25",
        "rate_per_m3": "900",
    }
    data.update(overrides)
    return TransportRateSnapshot.build(**data)


class CountingRateResolver:
    def __init__(self, rates=()):
        self.inner = InMemoryRateResolver(rates)
        self.calls = 0

    def get_transport_rate(self, origin, destination, mode):
        self.calls += 1
        return self.inner.get_transport_rate(origin, destination, mode)


class CountingConfigProvider:
    def __init__(self):
        self.inner = StaticPricingConfigProvider()
        self.calls = 0

    def get_pricing_config(self):
        self.calls += 1
        return self.inner.get_pricing_config()


class BrokenRateResolver:
    def get_transport_rate(self, origin, destination, mode):
        raise RuntimeError("base de tarifas no disponible")


class VolumeAndChargeableWeightTests(SimpleTestCase):
    def setUp(self):
        self.config = StaticPricingConfigProvider().get_pricing_config()

    def test_volume_in_cubic_meters(self):
        self.assertEqual(calculate_volume(100, 80, 60), Decimal("0.48"))
        self.assertEqual(calculate_volume("30", "20", "5"), Decimal("0.003"))

    def test_volume_rejects_non_positive_dimension(self):
        with self.assertRaises(InvalidDimensions):
            calculate_volume(100, 0, 60)
        with self.assertRaises(InvalidDimensions):
            calculate_volume(-1, 10, 10)

    def test_air_uses_volumetric_weight_when_higher(self):
        chargeable = calculate_chargeable_weight(
            real_weight_kg=Decimal("50"),
            volume_m3=Decimal("0.48"),
            mode=TransportMode.AIR,
            config=self.config,
        )

        self.assertEqual(chargeable.volumetric_weight_kg, Decimal("80.16"))
        self.assertEqual(chargeable.chargeable_weight, Decimal("80.16"))
        self.assertEqual(chargeable.unit, ChargeableUnit.KG)
        self.assertTrue(chargeable.billed_on_volume)

    def test_air_keeps_real_weight_when_heavier(self):
        chargeable = calculate_chargeable_weight(
            real_weight_kg=Decimal("200"),
            volume_m3=Decimal("0.48"),
            mode=TransportMode.AIR,
            config=self.config,
        )

        self.assertEqual(chargeable.chargeable_weight, Decimal("200"))
        self.assertFalse(chargeable.billed_on_volume)

    def test_sea_uses_freight_tons(self):
        chargeable = calculate_chargeable_weight(
            real_weight_kg=Decimal("500"),
            volume_m3=Decimal("2"),
            mode=TransportMode.SEA,
            config=self.config,
        )

        self.assertEqual(chargeable.unit, ChargeableUnit.FREIGHT_TON)
        self.assertEqual(chargeable.chargeable_weight, Decimal("2"))
        self.assertEqual(chargeable.volumetric_weight_kg, Decimal("0"))
        self.assertTrue(chargeable.billed_on_volume)

    def test_volumetric_weight_ignored_when_disabled_for_mode(self):
        data = dict(DEFAULT_PRICING_CONFIG)
        data["use_volumetric_weight_per_mode"] = {**DEFAULT_PRICING_CONFIG["use_volumetric_weight_per_mode"], "ROAD": False}
        config = PricingConfigSnapshot.from_dict(data)

        chargeable = calculate_chargeable_weight(
            real_weight_kg=Decimal("10"),
            volume_m3=Decimal("1"),
            mode=TransportMode.ROAD,
            config=config,
        )

        self.assertEqual(chargeable.chargeable_weight, Decimal("10"))
        self.assertEqual(chargeable.volumetric_weight_kg, Decimal("0"))
        self.assertFalse(chargeable.billed_on_volume)

    def test_unknown_mode_falls_back_to_real_weight(self):
        chargeable = calculate_chargeable_weight(
            real_weight_kg=Decimal("12"),
            volume_m3=Decimal("1"),
            mode="HYPERLOOP",
            config=self.config,
        )

        self.assertEqual(chargeable.chargeable_weight, Decimal("12"))
        self.assertEqual(chargeable.unit, ChargeableUnit.KG)


class RateSelectionAndSurchargeTests(SimpleTestCase):
    def setUp(self):
        self.config = StaticPricingConfigProvider().get_pricing_config()

    def test_route_rate_per_kg_for_kilogram_unit(self):
        selection = select_rate(
            transport_rate=fr_bf_air_rate(),
            config=self.config,
            mode=TransportMode.AIR,
            chargeable_unit=ChargeableUnit.KG,
        )

        self.assertEqual(selection.unit_rate, Decimal("7.25"))
        self.assertTrue(selection.route_rate_used)
        self.assertEqual(selection.cargo_type_surcharges, self.config.cargo_type_surcharges)

    def test_default_rate_applies_mode_multiplier_and_warns(self):
        with self.assertLogs("pricing.services.rates", level="WARNING") as logs:
            selection = select_rate(
                transport_rate=None,
                config=self.config,
                mode=TransportMode.SEA,
                chargeable_unit=ChargeableUnit.FREIGHT_TON,
                origin="FR",
                destination="SN",
            )

        self.assertEqual(selection.unit_rate, Decimal("120.00"))
        self.assertFalse(selection.route_rate_used)
        self.assertIn("FR -> SN", logs.output[0])

    def test_inactive_route_is_ignored(self):
        with self.assertLogs("pricing.services.rates", level="WARNING"):
            selection = select_rate(
                transport_rate=fr_bf_air_rate(is_active=False),
                config=self.config,
                mode=TransportMode.AIR,
                chargeable_unit=ChargeableUnit.KG,
            )

        self.assertEqual(selection.unit_rate, Decimal("3.0"))
        self.assertFalse(selection.route_rate_used)

    def test_priority_compounds_on_cargo_subtotal(self):
        breakdown = apply_surcharges(
            base_cost=Decimal("100"),
            cargo_type=CargoType.DANGEROUS,
            priority=Priority.EXPRESS,
            cargo_type_surcharges=self.config.cargo_type_surcharges,
            priority_surcharges=self.config.priority_surcharges,
        )

        self.assertEqual(breakdown.cargo_surcharge, Decimal("50.0"))
        self.assertEqual(breakdown.subtotal, Decimal("150.0"))
        self.assertEqual(breakdown.priority_coefficient, Decimal("1.5"))
        self.assertEqual(breakdown.priority_surcharge, Decimal("75.00"))
        self.assertEqual(breakdown.final_price, Decimal("225.00"))

    def test_missing_cargo_type_has_no_surcharge(self):
        breakdown = apply_surcharges(
            base_cost=Decimal("80"),
            cargo_type=None,
            priority=Priority.STANDARD,
            cargo_type_surcharges=self.config.cargo_type_surcharges,
            priority_surcharges={},
        )

        self.assertEqual(breakdown.cargo_surcharge, Decimal("0"))
        self.assertEqual(breakdown.priority_coefficient, Decimal("1"))
        self.assertEqual(breakdown.final_price, Decimal("80"))


class SingleLinePricingTests(SimpleTestCase):
    def setUp(self):
        self.config_provider = StaticPricingConfigProvider()
        self.rate_resolver = InMemoryRateResolver(
            [
                fr_bf_air_rate(),
                TransportRateSnapshot.build(
                    origin_code="FR", destination_code="SN", mode=TransportMode.SEA, rate_per_kg="0.8", rate_per_m3="150"
                ),
                TransportRateSnapshot.build(
                    origin_code="FR", destination_code="ES", mode=TransportMode.ROAD, rate_per_kg="2", rate_per_m3="300"
                ),
            ]
        )

    def _price(self, **kwargs):
        return price_single_line(
            PricingInput(**kwargs),
            config_provider=self.config_provider,
            rate_resolver=self.rate_resolver,
        )

    def test_air_fragile_urgent_end_to_end(self):
        result = self._price(
            real_weight_kg=Decimal("50"),
            length_cm=Decimal("100"),
            width_cm=Decimal("80"),
            height_cm=Decimal("60"),
            mode=TransportMode.AIR,
            cargo_type=CargoType.FRAGILE,
            priority=Priority.URGENT,
            origin_code="FR",
            destination_code="BF",
        )

        self.assertEqual(result.volume_m3, Decimal("0.480"))
        self.assertEqual(result.volumetric_weight_kg, Decimal("80.16"))
        self.assertEqual(result.chargeable_weight, Decimal("80.16"))
        self.assertEqual(result.unit_rate, Decimal("7.2500"))
        self.assertEqual(result.base_cost, Decimal("581.16"))
        self.assertEqual(result.cargo_surcharge_amount, Decimal("174.35"))
        self.assertEqual(result.priority_coefficient, Decimal("1.3"))
        self.assertEqual(result.priority_surcharge_amount, Decimal("226.65"))
        self.assertEqual(result.final_price, Decimal("982.16"))
        self.assertEqual(result.currency, "EUR")
        self.assertEqual(result.route.label, "FR → BF")
        self.assertEqual(result.estimated_delivery_days, 1)
        self.assertTrue(result.billed_on_volume)
        self.assertTrue(result.route_rate_used)

    def test_sea_priced_per_freight_ton_on_m3_rate(self):
        result = self._price(
            real_weight_kg=Decimal("2000"),
            length_cm=Decimal("150"),
            width_cm=Decimal("100"),
            height_cm=Decimal("100"),
            mode=TransportMode.SEA,
            origin_code="FR",
            destination_code="SN",
        )

        self.assertEqual(result.chargeable_weight, Decimal("2.00"))
        self.assertEqual(result.chargeable_weight_unit, ChargeableUnit.FREIGHT_TON)
        self.assertEqual(result.unit_rate, Decimal("150"))
        self.assertEqual(result.base_cost, Decimal("300.00"))
        self.assertFalse(result.billed_on_volume)
        self.assertEqual(result.estimated_delivery_days, 33)

    def test_sea_light_cargo_billed_on_volume(self):
        result = self._price(
            real_weight_kg=Decimal("500"),
            length_cm=Decimal("200"),
            width_cm=Decimal("100"),
            height_cm=Decimal("100"),
            mode=TransportMode.SEA,
            origin_code="FR",
            destination_code="SN",
        )

        self.assertEqual(result.chargeable_weight, Decimal("2.00"))
        self.assertEqual(result.base_cost, Decimal("300.00"))
        self.assertTrue(result.billed_on_volume)

    def test_missing_route_uses_default_rate(self):
        with self.assertLogs("pricing.services.rates", level="WARNING"):
            result = self._price(
                real_weight_kg=Decimal("10"),
                mode=TransportMode.AIR,
                origin_code="DE",
                destination_code="ML",
            )

        self.assertEqual(result.unit_rate, Decimal("3.0"))
        self.assertEqual(result.base_cost, Decimal("30.00"))
        self.assertEqual(result.final_price, Decimal("30.00"))
        self.assertFalse(result.route_rate_used)

    def test_missing_sea_route_uses_default_m3_rate(self):
        with self.assertLogs("pricing.services.rates", level="WARNING"):
            result = self._price(
                real_weight_kg=Decimal("2000"),
                mode=TransportMode.SEA,
                origin_code="DE",
                destination_code="ML",
            )

        self.assertEqual(result.unit_rate, Decimal("120"))
        self.assertEqual(result.base_cost, Decimal("240.00"))

    def test_route_surcharge_tables_override_config(self):
        self.rate_resolver = InMemoryRateResolver(
            [
                fr_bf_air_rate(
                    rate_per_kg="5",
                    cargo_type_surcharges={"FRAGILE": "0.1"},
                    priority_surcharges={"URGENT": "0.2"},
                )
            ]
        )

        result = self._price(
            real_weight_kg=Decimal("10"),
            mode=TransportMode.AIR,
            cargo_type=CargoType.FRAGILE,
            priority=Priority.URGENT,
            origin_code="FR",
            destination_code="BF",
        )

        self.assertEqual(result.cargo_surcharge_amount, Decimal("5.00"))
        self.assertEqual(result.final_price, Decimal("66.00"))

    def test_bulk_discount_with_express_priority(self):
        result = self._price(
            real_weight_kg=Decimal("100"),
            mode=TransportMode.ROAD,
            cargo_type=CargoType.BULK,
            priority=Priority.EXPRESS,
            origin_code="FR",
            destination_code="ES",
        )

        self.assertEqual(result.base_cost, Decimal("200.00"))
        self.assertEqual(result.cargo_surcharge_amount, Decimal("-20.00"))
        self.assertEqual(result.final_price, Decimal("270.00"))

    def test_country_codes_are_normalized(self):
        result = self._price(
            real_weight_kg=Decimal("10"),
            mode=TransportMode.AIR,
            origin_code=" fr ",
            destination_code="Burkina Faso",
        )

        self.assertEqual(result.route.origin, "FR")
        self.assertEqual(result.route.destination, "BF")
        self.assertTrue(result.route_rate_used)

    def test_invalid_weight_fails_before_any_lookup(self):
        provider = CountingConfigProvider()
        resolver = CountingRateResolver()

        with self.assertRaises(InvalidWeight):
            price_single_line(
                PricingInput(real_weight_kg=Decimal("0"), mode=TransportMode.AIR, origin_code="FR", destination_code="BF"),
                config_provider=provider,
                rate_resolver=resolver,
            )

        self.assertEqual(provider.calls, 0)
        self.assertEqual(resolver.calls, 0)

    def test_partial_dimensions_are_rejected(self):
        with self.assertRaises(InvalidDimensions):
            self._price(
                real_weight_kg=Decimal("10"),
                length_cm=Decimal("10"),
                mode=TransportMode.AIR,
                origin_code="FR",
                destination_code="BF",
            )

    def test_pricing_errors_are_value_errors(self):
        self.assertTrue(issubclass(PricingError, ValueError))
        self.assertTrue(issubclass(InvalidQuantity, PricingError))

    def test_resolver_errors_propagate(self):
        with self.assertRaises(RuntimeError):
            price_single_line(
                PricingInput(real_weight_kg=Decimal("10"), mode=TransportMode.AIR, origin_code="FR", destination_code="BF"),
                config_provider=self.config_provider,
                rate_resolver=BrokenRateResolver(),
            )

    def test_same_input_gives_same_result(self):
        pricing_input = PricingInput(
            real_weight_kg=Decimal("42.5"),
            length_cm=Decimal("55"),
            width_cm=Decimal("40"),
            height_cm=Decimal("30"),
            mode=TransportMode.AIR,
            cargo_type=CargoType.PERISHABLE,
            priority=Priority.NORMAL,
            origin_code="FR",
            destination_code="BF",
        )

        first = price_single_line(pricing_input, config_provider=self.config_provider, rate_resolver=self.rate_resolver)
        second = price_single_line(
            replace(pricing_input), config_provider=self.config_provider, rate_resolver=self.rate_resolver
        )

        self.assertEqual(first, second)


class MultiPackagePricingTests(SimpleTestCase):
    def setUp(self):
        self.config_provider = StaticPricingConfigProvider()
        self.rate_resolver = CountingRateResolver([fr_bf_air_rate()])
        self.packages = [
            PackageLine(
                weight_kg=Decimal("2"),
                quantity=1,
                cargo_type=CargoType.FRAGILE,
                length_cm=Decimal("30"),
                width_cm=Decimal("20"),
                height_cm=Decimal("5"),
                description="Muestras",
            ),
            PackageLine(
                weight_kg=Decimal("15"),
                quantity=3,
                cargo_type=CargoType.GENERAL,
                length_cm=Decimal("60"),
                width_cm=Decimal("40"),
                height_cm=Decimal("40"),
                description="Cajas",
            ),
        ]

    def _price(self, packages, priority=Priority.STANDARD):
        return price_multiple_packages(
            MultiPackageInput(
                packages=packages,
                mode=TransportMode.AIR,
                origin_code="FR",
                destination_code="BF",
                priority=priority,
            ),
            config_provider=self.config_provider,
            rate_resolver=self.rate_resolver,
        )

    def test_priority_applied_once_on_total(self):
        result = self._price(self.packages, priority=Priority.URGENT)

        self.assertEqual(result.lines[0].unit_price, Decimal("18.85"))
        self.assertEqual(result.lines[0].line_total, Decimal("18.85"))
        self.assertEqual(result.lines[1].unit_price, Decimal("116.23"))
        self.assertEqual(result.lines[1].line_total, Decimal("348.69"))
        self.assertEqual(result.total_before_priority, Decimal("367.54"))
        self.assertEqual(result.priority_coefficient, Decimal("1.3"))
        self.assertEqual(result.total_price, Decimal("477.80"))
        self.assertEqual(result.total_weight_kg, Decimal("47.00"))
        self.assertEqual(result.total_package_count, 4)
        self.assertEqual(result.dominant_cargo_type, CargoType.GENERAL)
        self.assertEqual(result.estimated_delivery_days, 1)
        self.assertEqual(result.route.label, "FR → BF")
        self.assertTrue(result.route_rate_used)

    def test_lines_are_priced_with_standard_priority(self):
        result = self._price(self.packages, priority=Priority.EXPRESS)

        for line in result.lines:
            self.assertEqual(line.detail.priority, Priority.STANDARD)
            self.assertEqual(line.detail.priority_coefficient, Decimal("1"))

    def test_standard_priority_skips_reference_lookup(self):
        result = self._price(self.packages)

        self.assertEqual(self.rate_resolver.calls, 2)
        self.assertEqual(result.priority_coefficient, Decimal("1"))
        self.assertEqual(result.total_price, result.total_before_priority)
        self.assertEqual(result.estimated_delivery_days, 2)

    def test_non_standard_priority_adds_one_reference_lookup(self):
        self._price(self.packages, priority=Priority.URGENT)

        self.assertEqual(self.rate_resolver.calls, 3)

    def test_dominant_cargo_tie_keeps_first_seen(self):
        packages = [
            PackageLine(weight_kg=Decimal("5"), quantity=2, cargo_type=CargoType.PERISHABLE),
            PackageLine(weight_kg=Decimal("5"), quantity=2, cargo_type=CargoType.GENERAL),
        ]

        result = self._price(packages)

        self.assertEqual(result.dominant_cargo_type, CargoType.PERISHABLE)

    def test_empty_package_list_is_rejected(self):
        with self.assertRaises(EmptyPackageList):
            self._price([])

    def test_invalid_quantity_is_rejected_before_pricing(self):
        packages = [self.packages[0], PackageLine(weight_kg=Decimal("3"), quantity=0)]

        with self.assertRaises(InvalidQuantity):
            self._price(packages)
        self.assertEqual(self.rate_resolver.calls, 0)

    def test_invalid_line_weight_is_rejected_before_pricing(self):
        packages = [self.packages[0], PackageLine(weight_kg=Decimal("-1"))]

        with self.assertRaises(InvalidWeight):
            self._price(packages)
        self.assertEqual(self.rate_resolver.calls, 0)

    def test_missing_route_marks_result_as_estimated(self):
        self.rate_resolver = CountingRateResolver()

        with self.assertLogs("pricing.services.rates", level="WARNING"):
            result = self._price(self.packages)

        self.assertFalse(result.route_rate_used)


class DeliveryEstimateTests(SimpleTestCase):
    def setUp(self):
        self.config = StaticPricingConfigProvider().get_pricing_config()

    def test_air_delivery_days(self):
        self.assertEqual(estimate_delivery_days(mode=TransportMode.AIR, priority=Priority.STANDARD, config=self.config), 2)
        self.assertEqual(estimate_delivery_days(mode=TransportMode.AIR, priority=Priority.URGENT, config=self.config), 1)

    def test_sea_delivery_days_by_priority(self):
        self.assertEqual(estimate_delivery_days(mode=TransportMode.SEA, priority=Priority.STANDARD, config=self.config), 33)
        self.assertEqual(estimate_delivery_days(mode=TransportMode.SEA, priority=Priority.NORMAL, config=self.config), 27)
        self.assertEqual(estimate_delivery_days(mode=TransportMode.SEA, priority=Priority.EXPRESS, config=self.config), 20)
        self.assertEqual(estimate_delivery_days(mode=TransportMode.SEA, priority=Priority.URGENT, config=self.config), 14)

    def test_mode_without_speed_uses_default(self):
        data = dict(DEFAULT_PRICING_CONFIG)
        data["delivery_speeds_per_mode"] = {}
        config = PricingConfigSnapshot.from_dict(data)

        self.assertEqual(estimate_delivery_days(mode=TransportMode.RAIL, priority=Priority.STANDARD, config=config), 7)


class CountryCodeTests(SimpleTestCase):
    def test_normalize_country_code(self):
        self.assertEqual(normalize_country_code("France"), "FR")
        self.assertEqual(normalize_country_code("Côte d'Ivoire"), "CI")
        self.assertEqual(normalize_country_code("España"), "ES")
        self.assertEqual(normalize_country_code("bf"), "BF")
        self.assertEqual(normalize_country_code(""), "")
        self.assertEqual(normalize_country_code(None), "")


class PresentationTests(SimpleTestCase):
    def setUp(self):
        self.result = price_single_line(
            PricingInput(
                real_weight_kg=Decimal("50"),
                length_cm=Decimal("100"),
                width_cm=Decimal("80"),
                height_cm=Decimal("60"),
                mode=TransportMode.AIR,
                cargo_type=CargoType.FRAGILE,
                priority=Priority.URGENT,
                origin_code="FR",
                destination_code="BF",
            ),
            config_provider=StaticPricingConfigProvider(),
            rate_resolver=InMemoryRateResolver([fr_bf_air_rate()]),
        )

    def test_format_number_formats_thousands_and_decimals(self):
        self.assertEqual(format_number(1234567.891), "1.234.567,89")
        self.assertEqual(format_number("1200"), "1.200")
        self.assertEqual(format_number(12.5), "12,5")
        self.assertEqual(format_number(0), "0")
        self.assertEqual(format_number(Decimal("-20.00")), "-20")
        self.assertEqual(format_number(Decimal("0.0045"), places=4), "0,0045")

    def test_format_pricing_result(self):
        formatted = format_pricing_result(self.result)

        self.assertEqual(formatted["total"], "982,16 EUR")
        self.assertIn("Ruta: FR → BF", formatted["details"])
        self.assertIn("Costo base: 581,16 EUR", formatted["details"])
        self.assertIn("Recargo Fragil (+30%): +174,35 EUR", formatted["details"])
        self.assertIn("Recargo prioridad Urgente (+30%): +226,65 EUR", formatted["details"])
        self.assertIn("Plazo estimado: 1 dias", formatted["details"])
        self.assertEqual(len(formatted["alerts"]), 1)
        self.assertTrue(formatted["alerts"][0].startswith("Facturacion por volumen"))

    def test_alerts_for_estimated_dangerous_sea_shipment(self):
        with self.assertLogs("pricing.services.rates", level="WARNING"):
            result = price_single_line(
                PricingInput(
                    real_weight_kg=Decimal("800"),
                    mode=TransportMode.SEA,
                    cargo_type=CargoType.DANGEROUS,
                    origin_code="FR",
                    destination_code="MA",
                ),
                config_provider=StaticPricingConfigProvider(),
                rate_resolver=InMemoryRateResolver(),
            )

        alerts = format_pricing_result(result)["alerts"]

        self.assertEqual(len(alerts), 3)
        self.assertTrue(alerts[0].startswith("Maritimo"))
        self.assertTrue(alerts[1].startswith("Tarifa estimada"))
        self.assertTrue(alerts[2].startswith("Mercancia peligrosa"))

    def test_serialize_result_is_json_safe(self):
        payload = serialize_result(self.result)

        self.assertEqual(payload["final_price"], "982.16")
        self.assertEqual(payload["mode"], "AIR")
        self.assertEqual(payload["cargo_type"], "FRAGILE")
        self.assertEqual(payload["chargeable_weight_unit"], "kg")
        self.assertEqual(payload["route"], {"origin": "FR", "destination": "BF", "label": "FR → BF"})

    def test_serialize_multi_package_result(self):
        result = price_multiple_packages(
            MultiPackageInput(
                packages=[PackageLine(weight_kg=Decimal("4"), quantity=2, description="Sobres")],
                mode=TransportMode.AIR,
                origin_code="FR",
                destination_code="BF",
            ),
            config_provider=StaticPricingConfigProvider(),
            rate_resolver=InMemoryRateResolver([fr_bf_air_rate()]),
        )

        payload = serialize_result(result)

        self.assertEqual(payload["total_price"], "58.00")
        self.assertEqual(payload["lines"][0]["description"], "Sobres")
        self.assertEqual(payload["lines"][0]["detail"]["priority"], "STANDARD")


def pricing_config_data(**overrides):
    data = {key: value for key, value in DEFAULT_PRICING_CONFIG.items()}
    data.update(overrides)
    return data


class PricingConfigModelTests(TestCase):
    def setUp(self):
        cache.clear()

    def test_defaults_used_when_no_row(self):
        config = DatabasePricingConfigProvider().get_pricing_config()

        self.assertEqual(config.default_rate_per_kg, Decimal("1.0"))
        self.assertEqual(config.transport_multiplier(TransportMode.SEA), Decimal("0.6"))

    def test_saving_config_invalidates_cache(self):
        provider = DatabasePricingConfigProvider()
        provider.get_pricing_config()

        PricingConfig.objects.create(**pricing_config_data(default_rate_per_kg="2.5", currency="usd"))
        config = provider.get_pricing_config()

        self.assertEqual(config.default_rate_per_kg, Decimal("2.5"))
        self.assertEqual(config.currency, "USD")

    def test_invalid_tables_are_rejected(self):
        with self.assertRaises(ValidationError) as ctx:
            PricingConfig.objects.create(
                **pricing_config_data(
                    cargo_type_surcharges={"LIQUID": 0.1},
                    transport_multipliers={"AIR": 50},
                )
            )

        self.assertIn("cargo_type_surcharges", ctx.exception.message_dict)
        self.assertIn("transport_multipliers", ctx.exception.message_dict)

    def test_delivery_speed_max_must_not_be_below_min(self):
        with self.assertRaises(ValidationError) as ctx:
            PricingConfig.objects.create(
                **pricing_config_data(delivery_speeds_per_mode={"AIR": {"min": 5, "max": 2}})
            )

        self.assertIn("delivery_speeds_per_mode", ctx.exception.message_dict)


class TransportRateModelTests(TestCase):
    def setUp(self):
        cache.clear()
        self.yesterday = date.today() - timedelta(days=1)

    def _create_rate(self, **overrides):
        data = {
            "origin_country_code": "fr",
            "destination_country_code": "bf",
            "transport_mode": TransportMode.AIR,
            "rate_per_kg": Decimal("7.25"),
            "rate_per_m3": Decimal("900"),
            "effective_from": self.yesterday,
        }
        data.update(overrides)
        return TransportRate.objects.create(**data)

    def test_resolver_returns_effective_rate(self):
        self._create_rate()
        self._create_rate(
            rate_per_kg=Decimal("9.00"),
            effective_from=date.today() + timedelta(days=10),
            effective_to=date.today() + timedelta(days=20),
        )

        snapshot = DatabaseRateResolver().get_transport_rate("fr", "bf", TransportMode.AIR)

        self.assertEqual(snapshot.origin_code, "FR")
        self.assertEqual(snapshot.rate_per_kg, Decimal("7.25"))
        self.assertIsNone(snapshot.cargo_type_surcharges)

    def test_resolver_reads_future_rate_for_given_date(self):
        self._create_rate(
            rate_per_kg=Decimal("9.00"),
            effective_from=date.today() + timedelta(days=10),
            effective_to=date.today() + timedelta(days=20),
        )

        resolver = DatabaseRateResolver()

        self.assertIsNone(resolver.get_transport_rate("FR", "BF", TransportMode.AIR))
        snapshot = resolver.get_transport_rate("FR", "BF", TransportMode.AIR, on_date=date.today() + timedelta(days=15))
        self.assertEqual(snapshot.rate_per_kg, Decimal("9.00"))

    def test_saving_rate_invalidates_cached_miss(self):
        resolver = DatabaseRateResolver()
        self.assertIsNone(resolver.get_transport_rate("FR", "BF", TransportMode.AIR))

        self._create_rate()

        self.assertEqual(resolver.get_transport_rate("FR", "BF", TransportMode.AIR).rate_per_kg, Decimal("7.25"))

    def test_inactive_rate_is_not_resolved(self):
        self._create_rate(is_active=False)

        self.assertIsNone(DatabaseRateResolver().get_transport_rate("FR", "BF", TransportMode.AIR))

    def test_same_origin_and_destination_is_invalid(self):
        rate = TransportRate(
            origin_country_code="FR",
            destination_country_code="fr",
            transport_mode=TransportMode.ROAD,
            rate_per_kg=Decimal("1"),
            rate_per_m3=Decimal("100"),
            effective_from=self.yesterday,
        )

        with self.assertRaises(ValidationError) as ctx:
            rate.full_clean()

        self.assertIn("destination_country_code", ctx.exception.message_dict)

    def test_only_one_open_active_rate_per_route(self):
        self._create_rate()

        with self.assertRaises(ValidationError):
            self._create_rate(rate_per_kg=Decimal("8.00"), effective_from=date.today())
        self.assertEqual(TransportRate.objects.count(), 1)

    def test_open_active_constraint_enforced_by_database(self):
        self._create_rate()
        duplicate = TransportRate(
            origin_country_code="FR",
            destination_country_code="BF",
            transport_mode=TransportMode.AIR,
            rate_per_kg=Decimal("8.00"),
            rate_per_m3=Decimal("900"),
            effective_from=date.today(),
        )

        with self.assertRaises(IntegrityError):
            with transaction.atomic():
                TransportRate.objects.bulk_create([duplicate])

    def test_create_rejects_route_surcharge_out_of_range(self):
        with self.assertRaises(ValidationError) as ctx:
            self._create_rate(cargo_type_surcharges={"FRAGILE": 40})

        self.assertIn("cargo_type_surcharges", ctx.exception.message_dict)
        self.assertFalse(TransportRate.objects.exists())

    def test_create_rejects_rate_below_minimum(self):
        with self.assertRaises(ValidationError) as ctx:
            self._create_rate(rate_per_kg=Decimal("0.001"))

        self.assertIn("rate_per_kg", ctx.exception.message_dict)
        self.assertFalse(TransportRate.objects.exists())

    def test_create_rejects_same_origin_and_destination(self):
        with self.assertRaises(ValidationError):
            self._create_rate(destination_country_code="FR")

    def test_editing_route_invalidates_previous_cache_key(self):
        rate = self._create_rate()
        resolver = DatabaseRateResolver()
        self.assertIsNotNone(resolver.get_transport_rate("FR", "BF", TransportMode.AIR))

        rate.destination_country_code = "SN"
        rate.save()

        self.assertIsNone(resolver.get_transport_rate("FR", "BF", TransportMode.AIR))
        self.assertEqual(resolver.get_transport_rate("FR", "SN", TransportMode.AIR).rate_per_kg, Decimal("7.25"))

    def test_cached_rate_does_not_outlive_effective_to(self):
        today = date.today()
        self._create_rate(effective_to=today)
        resolver = DatabaseRateResolver()

        with mock.patch("pricing.services.providers._today", return_value=today):
            self.assertIsNotNone(resolver.get_transport_rate("FR", "BF", TransportMode.AIR))
        with mock.patch("pricing.services.providers._today", return_value=today + timedelta(days=1)):
            self.assertIsNone(resolver.get_transport_rate("FR", "BF", TransportMode.AIR))

    def test_price_single_line_uses_configured_collaborators(self):
        self._create_rate()

        result = price_single_line(
            PricingInput(
                real_weight_kg=Decimal("10"),
                mode=TransportMode.AIR,
                origin_code="France",
                destination_code="Burkina Faso",
            )
        )

        self.assertEqual(result.final_price, Decimal("72.50"))
        self.assertTrue(result.route_rate_used)


class CollaboratorSettingsTests(SimpleTestCase):
    @override_settings(PRICING_CONFIG_PROVIDER="pricing.services.providers.MissingProvider")
    def test_unknown_provider_path(self):
        with self.assertRaises(ImproperlyConfigured):
            get_config_provider()

    @override_settings(PRICING_RATE_RESOLVER=None)
    def test_missing_resolver_setting(self):
        with self.assertRaises(ImproperlyConfigured):
            get_rate_resolver()

    @override_settings(PRICING_RATE_RESOLVER="pricing.services.providers.InMemoryRateResolver")
    def test_resolver_loaded_from_settings(self):
        self.assertIsInstance(get_rate_resolver(), InMemoryRateResolver)
