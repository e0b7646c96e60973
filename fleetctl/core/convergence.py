"""
Cancellable delayed tasks keyed by asset id.
"""
import threading
from typing import Callable, Dict, Optional

from fleetctl.utils import get_logger

logger = get_logger(__name__)

TimerFactory = Callable[[float, Callable[[], None]], threading.Timer]


class ConvergenceScheduler:
    """
    Runs at most one pending follow-up task per asset.

    Scheduling a task for an asset that already has one pending cancels the
    older task first, and ``cancel`` drops whatever is pending. A cancelled
    task that already started running is still guarded by the caller's own
    revision check, so this class only needs best-effort cancellation.
    """

    def __init__(self, timer_factory: TimerFactory = threading.Timer):
        self._timer_factory = timer_factory
        self._pending: Dict[str, threading.Timer] = {}
        self._lock = threading.Lock()

    def schedule(self, asset_id: str, delay: float, task: Callable[[], None]) -> None:
        """
        Schedules ``task`` to run after ``delay`` seconds, superseding any
        task already pending for the same asset.
        """
        timer_ref: Dict[str, threading.Timer] = {}

        def run():
            try:
                task()
            except Exception as e:
                logger.error(f"Convergence task for asset {asset_id} failed: {e}", exc_info=True)
            finally:
                # Stays pending until the task is done so drain() can join it.
                with self._lock:
                    if self._pending.get(asset_id) is timer_ref.get("timer"):
                        del self._pending[asset_id]

        timer = self._timer_factory(delay, run)
        timer.daemon = True
        timer_ref["timer"] = timer

        with self._lock:
            previous = self._pending.pop(asset_id, None)
            if previous is not None:
                previous.cancel()
                logger.debug(f"Superseded pending convergence for asset {asset_id}.")
            self._pending[asset_id] = timer
            timer.start()
        logger.debug(f"Convergence for asset {asset_id} scheduled in {delay}s.")

    def cancel(self, asset_id: str) -> bool:
        """Cancels the task pending for an asset. Returns True if one was pending."""
        with self._lock:
            timer = self._pending.pop(asset_id, None)
        if timer is None:
            return False
        timer.cancel()
        logger.debug(f"Cancelled pending convergence for asset {asset_id}.")
        return True

    def has_pending(self, asset_id: str) -> bool:
        with self._lock:
            return asset_id in self._pending

    def pending_count(self) -> int:
        with self._lock:
            return len(self._pending)

    def drain(self, timeout: Optional[float] = None) -> bool:
        """
        Waits for every pending task to finish.

        :return: True if nothing is pending afterwards
        """
        with self._lock:
            timers = list(self._pending.values())
        for timer in timers:
            timer.join(timeout)
        return self.pending_count() == 0

    def shutdown(self) -> None:
        """Cancels every pending task."""
        with self._lock:
            timers = list(self._pending.values())
            self._pending.clear()
        for timer in timers:
            timer.cancel()
        if timers:
            logger.info(f"Cancelled {len(timers)} pending convergence task(s) on shutdown.")
