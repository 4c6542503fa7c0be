import logging
from datetime import date
from typing import Iterable, Protocol

from django.conf import settings
from django.core.cache import cache
from django.core.exceptions import ImproperlyConfigured
from django.db.models import Q
from django.utils.module_loading import import_string

from pricing.constants import DEFAULT_PRICING_CONFIG
from pricing.services.snapshots import PricingConfigSnapshot, TransportRateSnapshot

logger = logging.getLogger(__name__)


CONFIG_CACHE_KEY = "pricing:config"
DEFAULT_CACHE_TIMEOUT = 3600


class PricingConfigProvider(Protocol):
    def get_pricing_config(self) -> PricingConfigSnapshot:
        ...


class RateResolver(Protocol):
    def get_transport_rate(self, origin: str, destination: str, mode: str) -> TransportRateSnapshot | None:
        ...


def _cache_timeout() -> int:
    return getattr(settings, "PRICING_CACHE_TIMEOUT", DEFAULT_CACHE_TIMEOUT)


def _today() -> date:
    return date.today()


# La fecha forma parte de la clave: una entrada cacheada no sobrevive al cambio de dia.
def _rate_cache_key(origin: str, destination: str, mode: str, on_date: date | None = None) -> str:
    day = (on_date or _today()).isoformat()
    return f"pricing:rate:{day}:{origin.upper()}:{destination.upper()}:{str(mode).upper()}"


def invalidate_pricing_config_cache() -> None:
    cache.delete(CONFIG_CACHE_KEY)


def invalidate_transport_rate_cache(*, origin: str, destination: str, mode: str) -> None:
    cache.delete(_rate_cache_key(origin, destination, mode))


def default_pricing_config() -> PricingConfigSnapshot:
    return PricingConfigSnapshot.from_dict(getattr(settings, "PRICING_DEFAULT_CONFIG", None) or DEFAULT_PRICING_CONFIG)


class StaticPricingConfigProvider:
    def __init__(self, snapshot: PricingConfigSnapshot | None = None):
        self.snapshot = snapshot or PricingConfigSnapshot.from_dict(DEFAULT_PRICING_CONFIG)

    def get_pricing_config(self) -> PricingConfigSnapshot:
        return self.snapshot


class InMemoryRateResolver:
    def __init__(self, rates: Iterable[TransportRateSnapshot] = ()):
        self.rates = {(rate.origin_code, rate.destination_code, str(rate.mode)): rate for rate in rates}

    def get_transport_rate(self, origin: str, destination: str, mode: str) -> TransportRateSnapshot | None:
        return self.rates.get((origin.upper(), destination.upper(), str(mode).upper()))


class DatabasePricingConfigProvider:
    def get_pricing_config(self) -> PricingConfigSnapshot:
        snapshot = cache.get(CONFIG_CACHE_KEY)
        if snapshot is not None:
            return snapshot

        from pricing.models import PricingConfig

        config = PricingConfig.objects.order_by("-created_at", "-id").first()
        if config is None:
            logger.info("No hay configuracion de precios en base de datos, se usan los valores por defecto.")
            snapshot = default_pricing_config()
        else:
            logger.debug("Configuracion de precios #%s cargada desde base de datos.", config.pk)
            snapshot = config.to_snapshot()
        cache.set(CONFIG_CACHE_KEY, snapshot, _cache_timeout())
        return snapshot


class DatabaseRateResolver:
    def get_transport_rate(
        self,
        origin: str,
        destination: str,
        mode: str,
        on_date: date | None = None,
    ) -> TransportRateSnapshot | None:
        target_date = on_date or _today()
        key = _rate_cache_key(origin, destination, mode, target_date)
        if on_date is None:
            cached = cache.get(key)
            # Se guarda una tupla para poder cachear tambien "ruta no configurada".
            if cached is not None:
                return cached[0]

        from pricing.models import TransportRate

        rate = (
            TransportRate.objects.filter(
                origin_country_code=origin.upper(),
                destination_country_code=destination.upper(),
                transport_mode=str(mode).upper(),
                is_active=True,
                effective_from__lte=target_date,
            )
            .filter(Q(effective_to__isnull=True) | Q(effective_to__gte=target_date))
            .order_by("-effective_from", "-id")
            .first()
        )
        snapshot = rate.to_snapshot() if rate else None
        logger.debug("Tarifa %s consultada en base de datos: %s", key, "encontrada" if snapshot else "sin tarifa")
        if on_date is None:
            cache.set(key, (snapshot,), _cache_timeout())
        return snapshot


def _load_collaborator(setting_name: str):
    path = getattr(settings, setting_name, None)
    if not path:
        raise ImproperlyConfigured(f"{setting_name} no esta configurado.")
    try:
        collaborator_class = import_string(path)
    except ImportError as exc:
        raise ImproperlyConfigured(f"{setting_name} apunta a una clase inexistente: {path}") from exc
    return collaborator_class()


def get_config_provider() -> PricingConfigProvider:
    return _load_collaborator("PRICING_CONFIG_PROVIDER")


def get_rate_resolver() -> RateResolver:
    return _load_collaborator("PRICING_RATE_RESOLVER")
