"""
UI state layered on the cache entry store and durable storage.

Public API:
    PageStateManager: Merged per-page state with durable mirroring
    PersistentTabState: Active tab of a page surviving restarts
    FormStateManager: Multi-tier form data with debounced auto-save
    FormValidationState: Per-field validation state
"""

from .form_state import CRITICAL_FIELDS, FormSnapshot, FormStateManager, FormValidationState
from .page_state import PageStateManager
from .tab_state import PersistentTabState

__all__ = [
    "PageStateManager",
    "PersistentTabState",
    "FormStateManager",
    "FormSnapshot",
    "FormValidationState",
    "CRITICAL_FIELDS",
]
