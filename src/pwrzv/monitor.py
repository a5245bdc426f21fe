"""Background polling of the power reserve for pwrzv."""

import logging
import threading
from dataclasses import dataclass
from datetime import datetime, timezone
from queue import Queue

from pwrzv.engine import PowerReserveMeter
from pwrzv.errors import PwrzvError
from pwrzv.models import DetailedResult

logger = logging.getLogger(__name__)

MIN_POLL_RATE = 0.5


@dataclass(slots=True, frozen=True)
class MonitorUpdate:
    """One poll outcome: a result or the error that prevented it."""

    timestamp: datetime
    result: DetailedResult | None = None
    error: PwrzvError | None = None

    @property
    def ok(self) -> bool:
        return self.result is not None


class ReserveMonitor:
    """
    Evaluates the power reserve on a daemon thread and pushes each outcome
    to a thread-safe Queue.

    An evaluation that fails is reported as an update carrying the error;
    the loop keeps polling.
    """

    def __init__(
        self,
        update_queue: Queue[MonitorUpdate],
        meter: PowerReserveMeter | None = None,
        poll_rate: float = 3.0,
    ) -> None:
        """
        Initialize the ReserveMonitor.

        Args:
            update_queue: Thread-safe queue to push updates to.
            meter: Meter used for each evaluation. Defaults to the host's.
            poll_rate: Seconds between evaluations. Default 3.0s.
        """
        self._queue = update_queue
        self._meter = PowerReserveMeter() if meter is None else meter
        self._poll_rate = max(MIN_POLL_RATE, poll_rate)
        self._stop_event = threading.Event()
        self._wake_event = threading.Event()
        self._thread: threading.Thread | None = None

    @property
    def poll_rate(self) -> float:
        """Get the current poll rate."""
        return self._poll_rate

    @poll_rate.setter
    def poll_rate(self, value: float) -> None:
        """Set the poll rate."""
        self._poll_rate = max(MIN_POLL_RATE, value)

    @property
    def is_running(self) -> bool:
        """Check if the monitor thread is running."""
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> None:
        """Start the monitoring thread."""
        if self.is_running:
            return

        self._stop_event.clear()
        self._thread = threading.Thread(
            target=self._poll_loop,
            daemon=True,
            name="ReserveMonitor",
        )
        self._thread.start()

    def stop(self, timeout: float | None = 5.0) -> None:
        """
        Stop the monitoring thread.

        Args:
            timeout: How long to wait for thread to stop (seconds).
        """
        self._stop_event.set()
        self._wake_event.set()
        if self._thread is not None:
            self._thread.join(timeout=timeout)
            self._thread = None

    def poll_now(self) -> None:
        """Cut the current wait short and evaluate immediately."""
        self._wake_event.set()

    def poll_once(self) -> MonitorUpdate:
        """Run a single evaluation and wrap its outcome."""
        now = datetime.now(timezone.utc)
        try:
            return MonitorUpdate(timestamp=now, result=self._meter.evaluate())
        except PwrzvError as e:
            logger.warning("Power reserve evaluation failed: %s", e)
            return MonitorUpdate(timestamp=now, error=e)
        except Exception as e:
            logger.exception("Unexpected error during power reserve evaluation")
            return MonitorUpdate(timestamp=now, error=PwrzvError(f"{type(e).__name__}: {e}"))

    def _poll_loop(self) -> None:
        """Main polling loop running in the background thread."""
        while not self._stop_event.is_set():
            self._queue.put(self.poll_once())

            # Wait for poll_rate seconds, a forced poll, or a stop request
            self._wake_event.wait(timeout=self._poll_rate)
            self._wake_event.clear()
