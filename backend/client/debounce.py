"""
Debounced values on asyncio
"""
import asyncio
import logging
from typing import Any, Callable, Optional

logger = logging.getLogger(__name__)

DEFAULT_DELAY = 0.3  # seconds, as the search boxes use

_UNSET = object()


class Debouncer:
    """
    Holds a value that follows its input only after `delay` seconds of quiet.

    Each set() restarts the timer, so a burst of inputs applies only the
    last one. on_change(value) fires when the debounced value changes.
    Must be used from a running event loop.
    """

    def __init__(self, delay: float = DEFAULT_DELAY, initial: Any = None,
                 on_change: Optional[Callable[[Any], None]] = None):
        self.delay = delay
        self.value = initial
        self.on_change = on_change
        self._pending = _UNSET
        self._timer: Optional[asyncio.TimerHandle] = None

    @property
    def has_pending(self) -> bool:
        return self._pending is not _UNSET

    def set(self, value: Any):
        self._pending = value
        if self._timer is not None:
            self._timer.cancel()
        self._timer = asyncio.get_running_loop().call_later(self.delay, self._apply)

    def flush(self):
        """Apply the pending value now"""
        if self._timer is not None:
            self._timer.cancel()
        self._apply()

    def cancel(self):
        """Drop the pending value"""
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None
        self._pending = _UNSET

    def _apply(self):
        self._timer = None
        if self._pending is _UNSET:
            return
        value, self._pending = self._pending, _UNSET
        if value == self.value:
            return
        self.value = value
        if self.on_change:
            try:
                self.on_change(value)
            except Exception as e:
                logger.warning(f"Debounced on_change failed: {e}")
