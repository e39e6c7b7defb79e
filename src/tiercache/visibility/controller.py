"""
Visibility-gated refresh controller.

Tracks two independent axes, visible/hidden and focused/blurred, from a
``SignalSource`` and turns genuine changes into callbacks. Rapid toggling is
coalesced by a per-axis throttle. Returning to the foreground (or regaining
focus) does not fire callbacks unless ``prevent_auto_refresh`` is False, so
switching back to the application does not reload data by default.

Classes:
    VisibilityCallbacks: Optional callbacks for each transition
    VisibilityController: Throttled state machine over a signal source
"""

from __future__ import annotations

import asyncio
import inspect
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

from ..core.config import Clock, now_ms
from ..utils.logging_config import get_logger
from .signals import SignalKind, SignalSource

Callback = Callable[[], Any]

_VISIBILITY_AXIS = "visibility"
_FOCUS_AXIS = "focus"


@dataclass
class VisibilityCallbacks:
    on_visible: Callback | None = None
    on_hidden: Callback | None = None
    on_focus: Callback | None = None
    on_blur: Callback | None = None
    on_before_unload: Callback | None = None


class VisibilityController:
    """
    Throttled visibility and focus state machine.

    A signal that arrives within ``throttle_ms`` of the previous accepted
    signal on the same axis is dropped. An accepted signal re-reads the
    source, so the controller converges on the real state even when
    intermediate toggles were dropped.
    """

    def __init__(
        self,
        source: SignalSource,
        callbacks: VisibilityCallbacks | None = None,
        throttle_ms: float = 100,
        prevent_auto_refresh: bool = True,
        enabled: bool = True,
        clock: Clock = now_ms,
    ):
        """
        Initialize the controller.

        Args:
            source: Signal source to observe
            callbacks: Transition callbacks; sync callables or coroutine functions
            throttle_ms: Minimum interval between accepted signals per axis
            prevent_auto_refresh: Suppress ``on_visible``/``on_focus``
            enabled: When False, every signal is ignored
            clock: Millisecond clock
        """
        self.source = source
        self.callbacks = callbacks or VisibilityCallbacks()
        self.throttle_ms = throttle_ms
        self.prevent_auto_refresh = prevent_auto_refresh
        self.enabled = enabled
        self.clock = clock
        self.logger = get_logger()

        self._visible = True
        self._focused = True
        self._last_accepted: dict[str, float] = {}
        self._unsubscribe: Callable[[], None] | None = None
        self._tasks: set[asyncio.Task[Any]] = set()

    @property
    def is_visible(self) -> bool:
        return self._visible

    @property
    def has_focus(self) -> bool:
        return self._focused

    @property
    def is_running(self) -> bool:
        return self._unsubscribe is not None

    def start(self) -> None:
        """Read the initial state from the source and subscribe to it."""
        if self._unsubscribe is not None:
            return
        self._visible = self.source.is_visible()
        self._focused = self.source.has_focus()
        self._last_accepted.clear()
        self._unsubscribe = self.source.subscribe(self.handle_signal)

    def stop(self) -> None:
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None

    def __enter__(self) -> VisibilityController:
        self.start()
        return self

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        self.stop()

    def handle_signal(self, kind: SignalKind) -> None:
        """Process one signal from the source."""
        if not self.enabled:
            return

        if kind == SignalKind.SHUTDOWN:
            self._fire("on_before_unload", self.callbacks.on_before_unload)
            return

        if kind in (SignalKind.FOREGROUND, SignalKind.BACKGROUND):
            axis = _VISIBILITY_AXIS
        else:
            axis = _FOCUS_AXIS
        now = self.clock()
        last = self._last_accepted.get(axis)
        if last is not None and now - last < self.throttle_ms:
            self.logger.debug(f"Throttled {kind.value} signal")
            return
        self._last_accepted[axis] = now

        if axis == _VISIBILITY_AXIS:
            self._update_visibility(self.source.is_visible())
        else:
            self._update_focus(self.source.has_focus())

    def _update_visibility(self, visible: bool) -> None:
        if visible == self._visible:
            return
        self._visible = visible
        if not visible:
            self._fire("on_hidden", self.callbacks.on_hidden)
        elif not self.prevent_auto_refresh:
            self._fire("on_visible", self.callbacks.on_visible)

    def _update_focus(self, focused: bool) -> None:
        if focused == self._focused:
            return
        self._focused = focused
        if not focused:
            self._fire("on_blur", self.callbacks.on_blur)
        elif not self.prevent_auto_refresh:
            self._fire("on_focus", self.callbacks.on_focus)

    def _fire(self, name: str, callback: Callback | None) -> None:
        if callback is None:
            return
        try:
            result = callback()
        except Exception as e:
            self.logger.error(f"Visibility callback {name} failed: {e}")
            return

        if inspect.isawaitable(result):
            try:
                loop = asyncio.get_running_loop()
            except RuntimeError:
                if inspect.iscoroutine(result):
                    result.close()
                self.logger.error(f"Visibility callback {name} needs a running event loop")
                return
            task = asyncio.ensure_future(result, loop=loop)
            self._tasks.add(task)
            task.add_done_callback(lambda t: self._task_done(name, t))

    def _task_done(self, name: str, task: asyncio.Future[Any]) -> None:
        self._tasks.discard(task)  # type: ignore[arg-type]
        if not task.cancelled() and task.exception() is not None:
            self.logger.error(f"Visibility callback {name} failed: {task.exception()}")
