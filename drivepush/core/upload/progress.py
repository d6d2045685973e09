"""
Progress throttling.

Byte-level progress can fire far more often than a UI needs to repaint;
the wrapper caps forwarding to one event per interval.
"""
import time
from typing import Callable, Optional

from .models import ProgressCallback, ProgressEvent
from ..api.config import PROGRESS_INTERVAL


def throttle_progress(
    callback: Optional[ProgressCallback],
    interval: float = PROGRESS_INTERVAL,
    clock: Callable[[], float] = time.monotonic
) -> ProgressCallback:
    """
    Wrap ``callback`` so it fires at most once per ``interval`` seconds.

    A 100%-complete event is always forwarded immediately.

    Args:
        callback: Caller's progress callback (None yields a no-op)
        interval: Minimum seconds between forwarded events
        clock: Monotonic clock (injectable for tests)

    Returns:
        Throttled callback
    """
    if callback is None:
        return lambda event: None

    last_call: Optional[float] = None

    def throttled(event: ProgressEvent) -> None:
        nonlocal last_call
        now = clock()
        if event.is_complete or last_call is None or now - last_call >= interval:
            last_call = now
            callback(event)

    return throttled
