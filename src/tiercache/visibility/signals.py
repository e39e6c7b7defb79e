"""
Environment signal sources.

A signal source reports whether the hosting process is in the foreground and
focused, and notifies listeners of changes. Hosts adapt their own event
model (a UI toolkit, a terminal, a service supervisor) to this interface;
``ManualSignalSource`` is driven programmatically.

Classes:
    SignalKind: Environment signal variants
    SignalSource: Abstract signal source
    ManualSignalSource: Source whose state is set by calling ``emit``
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Callable
from enum import Enum

from ..utils.logging_config import get_logger


class SignalKind(str, Enum):
    """Environment signal variants."""

    FOREGROUND = "foreground"
    BACKGROUND = "background"
    FOCUS = "focus"
    BLUR = "blur"
    SHUTDOWN = "shutdown"


SignalListener = Callable[[SignalKind], None]


class SignalSource(ABC):
    """Abstract source of visibility, focus and shutdown signals."""

    @abstractmethod
    def is_visible(self) -> bool:
        """Current foreground state."""

    @abstractmethod
    def has_focus(self) -> bool:
        """Current focus state."""

    @abstractmethod
    def subscribe(self, listener: SignalListener) -> Callable[[], None]:
        """
        Register a listener.

        Returns:
            A callable that removes the listener
        """


class ManualSignalSource(SignalSource):
    """Signal source driven by explicit ``emit`` calls."""

    def __init__(self, visible: bool = True, focused: bool = True):
        self._visible = visible
        self._focused = focused
        self._listeners: list[SignalListener] = []
        self.logger = get_logger()

    def is_visible(self) -> bool:
        return self._visible

    def has_focus(self) -> bool:
        return self._focused

    def subscribe(self, listener: SignalListener) -> Callable[[], None]:
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    @property
    def listener_count(self) -> int:
        return len(self._listeners)

    def emit(self, kind: SignalKind) -> None:
        """Update the source state for ``kind`` and notify every listener."""
        if kind == SignalKind.FOREGROUND:
            self._visible = True
        elif kind == SignalKind.BACKGROUND:
            self._visible = False
        elif kind == SignalKind.FOCUS:
            self._focused = True
        elif kind == SignalKind.BLUR:
            self._focused = False

        for listener in list(self._listeners):
            try:
                listener(kind)
            except Exception as e:
                self.logger.error(f"Signal listener failed on {kind.value}: {e}")
