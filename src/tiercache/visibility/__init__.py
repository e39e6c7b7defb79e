"""
Visibility-gated refresh control.

Public API:
    SignalKind, SignalSource, ManualSignalSource: Environment signals
    VisibilityController, VisibilityCallbacks: Throttled transition callbacks
"""

from .controller import VisibilityCallbacks, VisibilityController
from .signals import ManualSignalSource, SignalKind, SignalSource

__all__ = [
    "SignalKind",
    "SignalSource",
    "ManualSignalSource",
    "VisibilityCallbacks",
    "VisibilityController",
]
