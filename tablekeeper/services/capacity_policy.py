"""Per-tenant capacity policy with safe defaults and change notification."""

import logging
import math
from collections.abc import Callable, Iterable, Mapping
from datetime import date
from typing import Any, NamedTuple, Protocol

from pydantic import ValidationError

from tablekeeper.models.capacity import CapacityConfig, Shift, SlotRounding
from tablekeeper.services.dates import parse_iso_date

logger = logging.getLogger(__name__)

DEFAULT_CONFIG = CapacityConfig()

# Smallest acceptable value per integer field
_INTEGER_FLOORS: dict[str, int] = {
    "total_capacity": 0,
    "max_party_size": 1,
    "standard_duration_min": 1,
    "buffer_min": 0,
    "slot_interval_min": 1,
}

ConfigListener = Callable[[CapacityConfig], None]


class ConfigLoadResult(NamedTuple):
    """A sane configuration plus the names of fields that fell back to defaults."""

    config: CapacityConfig
    coerced_fields: list[str]


def _coerce_int(value: Any, floor: int) -> int | None:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        number = value
    elif isinstance(value, float) and math.isfinite(value) and value.is_integer():
        number = int(value)
    elif isinstance(value, str):
        try:
            number = int(value.strip())
        except ValueError:
            return None
    else:
        return None
    return number if number >= floor else None


def _coerce_shifts(value: Any) -> tuple[Shift, ...] | None:
    if isinstance(value, (str, bytes, Mapping)) or not isinstance(value, Iterable):
        return None
    try:
        return tuple(Shift.model_validate(item) for item in value)
    except ValidationError:
        return None


def _coerce_closed_dates(value: Any) -> tuple[frozenset[date], bool]:
    """Keep every parseable entry; report whether anything was dropped."""
    if isinstance(value, (str, bytes, Mapping)) or not isinstance(value, Iterable):
        return DEFAULT_CONFIG.closed_dates, True

    kept: set[date] = set()
    dropped = False
    for item in value:
        if isinstance(item, date):
            kept.add(item)
            continue
        parsed = parse_iso_date(item) if isinstance(item, str) else None
        if parsed is None:
            dropped = True
        else:
            kept.add(parsed)
    return frozenset(kept), dropped


def load_capacity_config(raw: Mapping[str, Any] | None) -> ConfigLoadResult:
    """Merge stored overrides onto the defaults, field by field.

    Any field that is missing keeps its default silently. Any field that is
    present but malformed or out of range also falls back to its default
    and is reported in ``coerced_fields``. This function never raises.

    Args:
        raw: Persisted overrides for one tenant (None means "no overrides")

    Returns:
        ConfigLoadResult with a valid CapacityConfig
    """
    if not raw:
        return ConfigLoadResult(DEFAULT_CONFIG, [])

    values: dict[str, Any] = {}
    coerced: list[str] = []

    for field, floor in _INTEGER_FLOORS.items():
        if field not in raw:
            continue
        number = _coerce_int(raw[field], floor)
        if number is None:
            coerced.append(field)
        else:
            values[field] = number

    if "slot_rounding" in raw:
        try:
            values["slot_rounding"] = SlotRounding(raw["slot_rounding"])
        except ValueError:
            coerced.append("slot_rounding")

    if "shifts" in raw:
        shifts = _coerce_shifts(raw["shifts"])
        if shifts is None:
            coerced.append("shifts")
        else:
            values["shifts"] = shifts

    if "closed_dates" in raw:
        closed, dropped = _coerce_closed_dates(raw["closed_dates"])
        values["closed_dates"] = closed
        if dropped:
            coerced.append("closed_dates")

    return ConfigLoadResult(DEFAULT_CONFIG.model_copy(update=values), coerced)


class ConfigStore(Protocol):
    """Persistence for raw per-tenant overrides."""

    def get_raw(self, tenant: str) -> dict[str, Any] | None: ...

    def save_raw(self, tenant: str, data: dict[str, Any]) -> None: ...


class InMemoryConfigStore:
    """Config store backed by a dict; overrides are kept as given."""

    def __init__(self, initial: Mapping[str, dict[str, Any]] | None = None) -> None:
        self._data: dict[str, dict[str, Any]] = {
            tenant: dict(overrides) for tenant, overrides in (initial or {}).items()
        }

    def get_raw(self, tenant: str) -> dict[str, Any] | None:
        stored = self._data.get(tenant)
        return dict(stored) if stored is not None else None

    def save_raw(self, tenant: str, data: dict[str, Any]) -> None:
        self._data[tenant] = dict(data)


class Subscription:
    """Handle returned by ConfigSubscribers.subscribe."""

    def __init__(self, registry: "ConfigSubscribers", tenant: str, listener: ConfigListener) -> None:
        self._registry = registry
        self.tenant = tenant
        self.listener = listener
        self.active = True

    def unsubscribe(self) -> None:
        """Stop notifications for this listener only. Safe to call twice."""
        if self.active:
            self._registry._remove(self)
            self.active = False


class ConfigSubscribers:
    """Tenant-scoped fan-out of configuration changes."""

    def __init__(self) -> None:
        self._by_tenant: dict[str, list[Subscription]] = {}

    def subscribe(self, tenant: str, listener: ConfigListener) -> Subscription:
        subscription = Subscription(self, tenant, listener)
        self._by_tenant.setdefault(tenant, []).append(subscription)
        logger.debug(f"Subscribed listener to config changes for tenant {tenant}")
        return subscription

    def _remove(self, subscription: Subscription) -> None:
        subscriptions = self._by_tenant.get(subscription.tenant)
        if not subscriptions:
            return
        # Identity, not equality: the same callable may be subscribed twice
        remaining = [s for s in subscriptions if s is not subscription]
        if remaining:
            self._by_tenant[subscription.tenant] = remaining
        else:
            del self._by_tenant[subscription.tenant]

    def count(self, tenant: str) -> int:
        return len(self._by_tenant.get(tenant, []))

    def notify(self, tenant: str, config: CapacityConfig) -> None:
        """Call every listener of ``tenant`` synchronously."""
        for subscription in list(self._by_tenant.get(tenant, [])):
            try:
                subscription.listener(config)
            except Exception:
                logger.exception(f"Config listener failed for tenant {tenant}")


class CapacityPolicy:
    """Reads and updates tenant capacity configuration."""

    def __init__(
        self,
        store: ConfigStore | None = None,
        subscribers: ConfigSubscribers | None = None,
    ) -> None:
        self.store = store if store is not None else InMemoryConfigStore()
        self.subscribers = subscribers if subscribers is not None else ConfigSubscribers()

    def load(self, tenant: str) -> ConfigLoadResult:
        """Load the tenant configuration and log any coerced field."""
        result = load_capacity_config(self.store.get_raw(tenant))
        if result.coerced_fields:
            logger.warning(
                f"Tenant {tenant}: invalid config values replaced by defaults "
                f"({', '.join(result.coerced_fields)})"
            )
        return result

    def get_config(self, tenant: str) -> CapacityConfig:
        """Get a complete, sane configuration for ``tenant``. Never fails."""
        return self.load(tenant).config

    def update_config(self, tenant: str, patch: Mapping[str, Any]) -> CapacityConfig:
        """Merge ``patch`` into the current configuration, persist, notify.

        Args:
            tenant: Tenant identifier
            patch: Field overrides (same names as CapacityConfig)

        Returns:
            The configuration now in effect for the tenant
        """
        current = self.get_config(tenant).model_dump(mode="json")
        merged = {**current, **dict(patch)}
        self.store.save_raw(tenant, merged)

        config = self.load(tenant).config
        logger.info(f"Updated capacity config for tenant {tenant}: {sorted(patch)}")
        self.subscribers.notify(tenant, config)
        return config

    def subscribe(self, tenant: str, listener: ConfigListener) -> Subscription:
        return self.subscribers.subscribe(tenant, listener)
