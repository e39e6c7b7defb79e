"""
Cache key derivation.

All cache keys are namespaced strings. Parameterized keys embed a canonical
serialization of the parameters so that two logically identical parameter
sets always produce the same key, independent of construction order.

Functions:
    canonical_params: Deterministic JSON text for a parameter structure
    request_key: Key for a keyed request (resource + parameters)
    page_state_key, data_key, query_key, form_key, user_data_key,
    company_data_key, session_key, preferences_key: Namespaced key builders
"""

from __future__ import annotations

import base64
from collections.abc import Iterable, Mapping
from typing import Any

from ..utils.serialization import to_json_bytes

PAGE_STATE_PREFIX = "page_state_"
DATA_PREFIX = "data_"
QUERY_PREFIX = "query_"
FORM_PREFIX = "form_"
PERSIST_PREFIX = "persist_"
NAVIGATION_KEY = "navigation_state"
SNAPSHOT_KEY = "app_cache_data"

NAMESPACE_PREFIXES = (PAGE_STATE_PREFIX, DATA_PREFIX, QUERY_PREFIX, FORM_PREFIX, PERSIST_PREFIX)


def _normalize(value: Any) -> Any:
    """Reduce a parameter structure to a canonical JSON-compatible form."""
    if isinstance(value, Mapping):
        return {str(k): _normalize(v) for k, v in value.items()}
    if isinstance(value, (set, frozenset)):
        items = [_normalize(v) for v in value]
        return sorted(items, key=lambda item: to_json_bytes(item, sort_keys=True))
    if isinstance(value, (list, tuple)):
        return [_normalize(v) for v in value]
    if isinstance(value, float) and value.is_integer():
        return int(value)
    return value


def canonical_params(params: Any) -> str:
    """
    Serialize parameters deterministically.

    Mapping keys are sorted at every level, sets are sorted, tuples become
    lists and integral floats are rendered as integers, so ``{"a": 1.0, "b": 2}``
    and ``{"b": 2, "a": 1}`` produce the same text.
    """
    return to_json_bytes(_normalize(params), sort_keys=True).decode("utf-8")


def _encode(params: Any) -> str:
    raw = canonical_params(params).encode("utf-8")
    return base64.urlsafe_b64encode(raw).decode("ascii").rstrip("=")


def request_key(resource_key: str, params: Any = None) -> str:
    """Key for a keyed request: ``<resource>`` or ``<resource>:<canonical params>``."""
    if params is None or params == {}:
        return resource_key
    return f"{resource_key}:{canonical_params(params)}"


def page_state_key(page_key: str) -> str:
    return f"{PAGE_STATE_PREFIX}{page_key}"


def data_key(table: str, params: Any = None) -> str:
    base_key = f"{DATA_PREFIX}{table}"
    if params:
        return f"{base_key}_{_encode(params)}"
    return base_key


def query_key(parts: Iterable[str]) -> str:
    return f"{QUERY_PREFIX}{'_'.join(parts)}"


def form_key(form_name: str) -> str:
    return f"{FORM_PREFIX}{form_name}"


def persist_key(key: str) -> str:
    return f"{PERSIST_PREFIX}{key}"


def user_data_key(user_id: str, data_type: str) -> str:
    return f"user_{user_id}_{data_type}"


def company_data_key(company_id: str, data_type: str) -> str:
    return f"company_{company_id}_{data_type}"


def session_key(session_id: str) -> str:
    return f"session_{session_id}"


def preferences_key(user_id: str) -> str:
    return f"preferences_{user_id}"


def strip_namespace(key: str) -> str:
    """Remove a single leading namespace prefix, if any."""
    for prefix in NAMESPACE_PREFIXES:
        if key.startswith(prefix):
            return key[len(prefix):]
    return key
