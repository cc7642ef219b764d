"""Polling loop that observes RustDesk for rdwatch."""

import logging
import threading
from queue import Queue

from rdwatch.builder import SnapshotBuilder
from rdwatch.models import ObservedState
from rdwatch.reconciler import Reconciler

log = logging.getLogger(__name__)


class RustDeskObserver:
    """
    Observer that rebuilds and reconciles RustDesk state on a fixed interval.

    Runs in a separate daemon thread and pushes each cycle's ObservedState to
    a thread-safe Queue. Only this thread touches the reconciler, and one
    cycle always finishes before the next is scheduled.
    """

    def __init__(
        self,
        update_queue: Queue[ObservedState],
        builder: SnapshotBuilder | None = None,
        reconciler: Reconciler | None = None,
        poll_rate: float = 1.0,
    ) -> None:
        """
        Initialize the RustDeskObserver.

        Args:
            update_queue: Thread-safe queue to push updates to.
            builder: Snapshot builder; defaults to one over psutil and xdotool.
            reconciler: Reconciler owning the retained state.
            poll_rate: How often to poll (in seconds). Default 1.0s.
        """
        self._queue = update_queue
        self._builder = builder or SnapshotBuilder()
        self._reconciler = reconciler or Reconciler()
        self._poll_rate = max(0.1, poll_rate)
        self._stop_event = threading.Event()
        self._thread: threading.Thread | None = None

    @property
    def poll_rate(self) -> float:
        """Get the current poll rate."""
        return self._poll_rate

    @poll_rate.setter
    def poll_rate(self, value: float) -> None:
        """Set the poll rate."""
        self._poll_rate = max(0.1, value)  # Minimum 0.1 seconds

    @property
    def is_running(self) -> bool:
        """Check if the observer thread is running."""
        return self._thread is not None and self._thread.is_alive()

    @property
    def state(self) -> ObservedState:
        """The most recently reconciled state."""
        return self._reconciler.state

    def start(self) -> None:
        """Start the observer thread."""
        if self.is_running:
            return

        self._stop_event.clear()
        self._thread = threading.Thread(
            target=self._poll_loop,
            daemon=True,
            name="RustDeskObserver",
        )
        self._thread.start()
        log.info("Observing RustDesk every %.1fs", self._poll_rate)

    def stop(self, timeout: float | None = 5.0) -> None:
        """
        Stop the observer thread. A cycle in progress is allowed to finish.

        Args:
            timeout: How long to wait for thread to stop (seconds).
        """
        self._stop_event.set()
        if self._thread is not None:
            self._thread.join(timeout=timeout)
            self._thread = None

    def refresh(self) -> ObservedState:
        """Run one build-and-reconcile cycle and return its state."""
        return self._reconciler.update(self._builder.build())

    def _poll_loop(self) -> None:
        """Main polling loop running in the background thread."""
        while not self._stop_event.is_set():
            try:
                self._queue.put(self.refresh())
            except Exception:
                # Keep the loop running; the next cycle starts from fresh process data
                log.exception("Observation cycle failed")

            self._stop_event.wait(timeout=self._poll_rate)
