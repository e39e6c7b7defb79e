"""
Core configuration: global settings, cache key derivation and the static
policy registry.
"""

from .config import DAY_MS, HOUR_MS, MINUTE_MS, SECOND_MS, CacheConfig, Clock, now_ms
from .keys import canonical_params, data_key, form_key, page_state_key, query_key, request_key
from .policy import PolicyCategory, PolicyDescriptor, PolicyRegistry, Priority

__all__ = [
    "CacheConfig",
    "Clock",
    "now_ms",
    "SECOND_MS",
    "MINUTE_MS",
    "HOUR_MS",
    "DAY_MS",
    "canonical_params",
    "data_key",
    "form_key",
    "page_state_key",
    "query_key",
    "request_key",
    "PolicyCategory",
    "PolicyDescriptor",
    "PolicyRegistry",
    "Priority",
]
