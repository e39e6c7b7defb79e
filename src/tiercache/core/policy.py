"""
Cache policy registry.

Policies map logical resource names (pages, data types, forms) to a TTL, a
durable persistence flag, an optional auto-refresh interval and an eviction
priority. The table is loaded once at start-up and never mutated; changing a
policy means redeploying configuration.

Classes:
    Priority: Eviction priority tiers (CRITICAL is evicted last)
    PolicyCategory: Which table a policy came from
    PolicyDescriptor: Immutable policy for one resource
    PolicyRegistry: Read-only lookups over the policy table

Resolution order for ``get_policy(key)``:
    1. Namespaced keys (``page_state_``, ``data_``/``query_``, ``form_``) are
       looked up in the matching table, exact name first, then the longest
       table name that prefixes the stripped key.
    2. Bare keys are looked up in pages, data types, then forms, exact match
       first, then longest prefix.
    3. Anything else gets the global defaults.
"""

from __future__ import annotations

import tomllib
from collections.abc import Mapping
from dataclasses import dataclass
from enum import Enum, IntEnum
from pathlib import Path
from types import MappingProxyType
from typing import Any

from ..utils.error_handling import ConfigurationError
from .config import DAY_MS, HOUR_MS, MINUTE_MS
from .keys import DATA_PREFIX, FORM_PREFIX, PAGE_STATE_PREFIX, QUERY_PREFIX

DEFAULT_TTL_MS = 30 * MINUTE_MS


class Priority(IntEnum):
    """Eviction priority. Lower value = kept longer."""

    CRITICAL = 1
    HIGH = 2
    MEDIUM = 3
    LOW = 4


class PolicyCategory(str, Enum):
    PAGE = "page"
    DATA = "data"
    FORM = "form"
    DEFAULT = "default"


@dataclass(frozen=True, slots=True)
class PolicyDescriptor:
    resource_key: str
    ttl_ms: float
    persist: bool = False
    auto_refresh: bool = False
    refresh_interval_ms: float | None = None
    priority: Priority = Priority.MEDIUM
    category: PolicyCategory = PolicyCategory.DEFAULT


DEFAULT_PAGES: dict[str, dict[str, Any]] = {
    "dashboard": {"ttl": 5 * MINUTE_MS, "persist": True, "auto_refresh": True, "refresh_interval": 2 * MINUTE_MS},
    "orders": {"ttl": 5 * MINUTE_MS, "persist": True, "auto_refresh": True, "refresh_interval": 3 * MINUTE_MS},
    "customers": {"ttl": 10 * MINUTE_MS, "persist": True},
    "inventory": {"ttl": 15 * MINUTE_MS, "persist": True, "auto_refresh": True, "refresh_interval": 5 * MINUTE_MS},
    "production": {"ttl": 2 * MINUTE_MS, "persist": True, "auto_refresh": True, "refresh_interval": 1 * MINUTE_MS},
    "quality": {"ttl": 5 * MINUTE_MS, "persist": True, "auto_refresh": True, "refresh_interval": 2 * MINUTE_MS},
    "warehouse": {"ttl": 10 * MINUTE_MS, "persist": True},
    "procurement": {"ttl": 15 * MINUTE_MS, "persist": True},
    "analytics": {"ttl": 30 * MINUTE_MS, "persist": True},
    "settings": {"ttl": HOUR_MS, "persist": True},
}

DEFAULT_DATA_TYPES: dict[str, dict[str, Any]] = {
    # User data
    "user_profile": {"ttl": HOUR_MS, "persist": True},
    "user_permissions": {"ttl": 30 * MINUTE_MS, "persist": True},
    "company_settings": {"ttl": HOUR_MS, "persist": True},
    # Master data
    "customers": {"ttl": 15 * MINUTE_MS, "persist": True},
    "products": {"ttl": 30 * MINUTE_MS, "persist": True},
    "employees": {"ttl": HOUR_MS, "persist": True},
    "suppliers": {"ttl": 30 * MINUTE_MS, "persist": True},
    "fabrics": {"ttl": 20 * MINUTE_MS, "persist": True},
    # Transactional data
    "orders": {"ttl": 5 * MINUTE_MS, "persist": True},
    "order_items": {"ttl": 5 * MINUTE_MS, "persist": True},
    "purchase_orders": {"ttl": 10 * MINUTE_MS, "persist": True},
    "invoices": {"ttl": 15 * MINUTE_MS, "persist": True},
    # Production data
    "production_orders": {"ttl": 2 * MINUTE_MS, "persist": True},
    "batches": {"ttl": 3 * MINUTE_MS, "persist": True},
    "quality_checks": {"ttl": 5 * MINUTE_MS, "persist": True},
    # Inventory data
    "inventory_items": {"ttl": 10 * MINUTE_MS, "persist": True},
    "warehouse_inventory": {"ttl": 5 * MINUTE_MS, "persist": True},
    # Analytics data
    "dashboard_metrics": {"ttl": 5 * MINUTE_MS, "persist": True},
    "reports": {"ttl": 30 * MINUTE_MS, "persist": True},
}

DEFAULT_FORMS: dict[str, dict[str, Any]] = {
    name: {"ttl": DAY_MS, "persist": True}
    for name in ("order_form", "customer_form", "product_form", "purchase_order_form", "bom_form")
}

DEFAULT_PRIORITIES: dict[str, Priority] = {
    # Critical data
    "user_profile": Priority.CRITICAL,
    "user_permissions": Priority.CRITICAL,
    "company_settings": Priority.CRITICAL,
    # High priority data
    "orders": Priority.HIGH,
    "production_orders": Priority.HIGH,
    "batches": Priority.HIGH,
    "quality_checks": Priority.HIGH,
    # Medium priority data
    "customers": Priority.MEDIUM,
    "products": Priority.MEDIUM,
    "inventory_items": Priority.MEDIUM,
    "purchase_orders": Priority.MEDIUM,
    # Low priority data
    "analytics": Priority.LOW,
    "reports": Priority.LOW,
    "dashboard_metrics": Priority.LOW,
}


def _parse_priority(name: str, value: Any) -> Priority:
    if isinstance(value, Priority):
        return value
    try:
        if isinstance(value, str):
            return Priority[value.upper()]
        return Priority(int(value))
    except (KeyError, ValueError) as e:
        raise ConfigurationError(
            f"Invalid priority for '{name}': {value!r}", context={"resource": name}
        ) from e


class PolicyRegistry:
    """
    Read-only policy lookups.

    The registry is safe to share between every component of a process; none
    of its methods mutate state.
    """

    def __init__(
        self,
        pages: Mapping[str, Mapping[str, Any]] | None = None,
        data_types: Mapping[str, Mapping[str, Any]] | None = None,
        forms: Mapping[str, Mapping[str, Any]] | None = None,
        priorities: Mapping[str, Any] | None = None,
        default_ttl_ms: float = DEFAULT_TTL_MS,
    ):
        self.default_ttl_ms = default_ttl_ms
        raw_priorities = DEFAULT_PRIORITIES if priorities is None else priorities
        self._priorities: Mapping[str, Priority] = MappingProxyType(
            {name: _parse_priority(name, value) for name, value in raw_priorities.items()}
        )
        self._pages = self._build(DEFAULT_PAGES if pages is None else pages, PolicyCategory.PAGE)
        self._data = self._build(
            DEFAULT_DATA_TYPES if data_types is None else data_types, PolicyCategory.DATA
        )
        self._forms = self._build(DEFAULT_FORMS if forms is None else forms, PolicyCategory.FORM)

    def _build(
        self, table: Mapping[str, Mapping[str, Any]], category: PolicyCategory
    ) -> Mapping[str, PolicyDescriptor]:
        built: dict[str, PolicyDescriptor] = {}
        for name, options in table.items():
            ttl = float(options.get("ttl", self.default_ttl_ms))
            if ttl < 0:
                raise ConfigurationError(
                    f"TTL for '{name}' must be non-negative", context={"resource": name, "ttl": ttl}
                )
            auto_refresh = bool(options.get("auto_refresh", False))
            interval = options.get("refresh_interval")
            if auto_refresh and (interval is None or float(interval) <= 0):
                raise ConfigurationError(
                    f"Auto-refreshing policy '{name}' needs a positive refresh_interval",
                    context={"resource": name},
                )
            built[name] = PolicyDescriptor(
                resource_key=name,
                ttl_ms=ttl,
                persist=bool(options.get("persist", False)),
                auto_refresh=auto_refresh,
                refresh_interval_ms=float(interval) if auto_refresh else None,
                priority=_parse_priority(name, options["priority"])
                if "priority" in options
                else self.get_priority(name),
                category=category,
            )
        return MappingProxyType(built)

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any], default_ttl_ms: float = DEFAULT_TTL_MS) -> PolicyRegistry:
        """Build a registry from ``{"pages": ..., "data_types": ..., "forms": ..., "priorities": ...}``."""
        return cls(
            pages=data.get("pages"),
            data_types=data.get("data_types"),
            forms=data.get("forms"),
            priorities=data.get("priorities"),
            default_ttl_ms=float(data.get("default_ttl", default_ttl_ms)),
        )

    @classmethod
    def from_toml(cls, path: Path | str) -> PolicyRegistry:
        """Load the ``[policies]`` table of a TOML deployment file."""
        try:
            with open(path, "rb") as f:
                data = tomllib.load(f)
        except (OSError, tomllib.TOMLDecodeError) as e:
            raise ConfigurationError(
                f"Cannot read policy file: {e}", context={"path": str(path)}
            ) from e
        return cls.from_mapping(data.get("policies", {}))

    def get_priority(self, data_type: str) -> Priority:
        """Priority for a data type; MEDIUM when unmapped."""
        return self._priorities.get(data_type, Priority.MEDIUM)

    def get_page_policy(self, page_key: str) -> PolicyDescriptor | None:
        return self._pages.get(page_key)

    def get_data_policy(self, data_type: str) -> PolicyDescriptor | None:
        return self._data.get(data_type)

    def get_form_policy(self, form_name: str) -> PolicyDescriptor | None:
        return self._forms.get(form_name)

    def default_policy(self, resource_key: str) -> PolicyDescriptor:
        return PolicyDescriptor(
            resource_key=resource_key,
            ttl_ms=self.default_ttl_ms,
            priority=self.get_priority(resource_key),
        )

    def get_policy(self, resource_key: str) -> PolicyDescriptor:
        """Resolve the policy for a resource or cache key, falling back to defaults."""
        namespaced: tuple[tuple[str, tuple[Mapping[str, PolicyDescriptor], ...]], ...] = (
            (PAGE_STATE_PREFIX, (self._pages,)),
            (DATA_PREFIX, (self._data,)),
            (QUERY_PREFIX, (self._data,)),
            (FORM_PREFIX, (self._forms,)),
        )
        for prefix, tables in namespaced:
            if resource_key.startswith(prefix):
                policy = self._match(resource_key[len(prefix):], tables)
                return policy or self.default_policy(resource_key)

        policy = self._match(resource_key, (self._pages, self._data, self._forms))
        return policy or self.default_policy(resource_key)

    @staticmethod
    def _match(
        name: str, tables: tuple[Mapping[str, PolicyDescriptor], ...]
    ) -> PolicyDescriptor | None:
        for table in tables:
            if name in table:
                return table[name]

        best: PolicyDescriptor | None = None
        for table in tables:
            for candidate, policy in table.items():
                if name.startswith(candidate) and (
                    best is None or len(candidate) > len(best.resource_key)
                ):
                    best = policy
        return best

    def resource_keys(self) -> list[str]:
        """All configured resource names, pages first."""
        seen: dict[str, None] = {}
        for table in (self._pages, self._data, self._forms):
            for name in table:
                seen.setdefault(name)
        return list(seen)

    def all_policies(self) -> list[PolicyDescriptor]:
        return [*self._pages.values(), *self._data.values(), *self._forms.values()]
