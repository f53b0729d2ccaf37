import logging
import threading
import time
from typing import List, Optional

from kubexpose.modules.api.events import Added, Event
from kubexpose.modules.api.models import InvalidKeyError, ReconcileKey
from kubexpose.modules.cluster.errors import CacheSyncError
from kubexpose.modules.cluster.interfaces import NotificationSource
from kubexpose.modules.queue import RateLimitingQueue

from .synchronizer import Synchronizer

logger = logging.getLogger(__name__)

QUEUE_NAME = "kubexpose-deployments"

# How often the cache sync wait checks for a stop request
SYNC_POLL_INTERVAL = 0.1


class Controller:
    def __init__(
        self,
        source: NotificationSource,
        synchronizer: Synchronizer,
        queue: Optional[RateLimitingQueue] = None,
        cache_sync_timeout: Optional[float] = 60.0,
    ):
        """
        Initialize controller.

        Args:
            source: Deployment cache and notification source
            synchronizer: Reconciles one key at a time
            queue: Work queue (a default rate-limiting queue if omitted)
            cache_sync_timeout: Seconds to wait for the initial cache sync
                (None waits forever)
        """
        self.source = source
        self.synchronizer = synchronizer
        self.queue = queue or RateLimitingQueue(name=QUEUE_NAME)
        self.cache_sync_timeout = cache_sync_timeout

        self._workers: List[threading.Thread] = []
        self._running = threading.Event()

        source.add_event_handler(self.handle_event)

    def handle_event(self, event: Event) -> None:
        """Turn a notification into a queued key."""
        kind = "add" if isinstance(event, Added) else "delete"
        key = str(event.key)
        logger.info(f"Received {kind} for key={key}")
        self.queue.add(key)

    def run(self, workers: int, stop_event: threading.Event) -> None:
        """
        Run the controller until stop_event is set.

        Logic:
        1. Wait for the initial cache sync (abort if it never completes,
           return quietly if stop_event is set first)
        2. Start the worker threads
        3. Block until stop_event, then shut the queue down
        4. Wait for workers to finish their in-flight keys

        Raises:
            CacheSyncError: The cache did not sync within cache_sync_timeout
        """
        if workers < 1:
            raise ValueError("workers must be >= 1")

        logger.info("Initializing controller...")
        logger.info("Waiting for cache synchronization...")
        if not self._wait_for_sync(stop_event):
            if stop_event.is_set():
                logger.info("Stop requested before cache synchronization")
                self.shut_down()
                return
            raise CacheSyncError(f"cache did not sync within {self.cache_sync_timeout}s")

        self.start_workers(workers)
        logger.info(f"Controller started with {workers} worker(s)")

        stop_event.wait()
        self.shut_down()

    def _wait_for_sync(self, stop_event: threading.Event) -> bool:
        deadline = None
        if self.cache_sync_timeout is not None:
            deadline = time.monotonic() + self.cache_sync_timeout

        while not stop_event.is_set():
            step = SYNC_POLL_INTERVAL
            if deadline is not None:
                remaining = deadline - time.monotonic()
                if remaining <= 0:
                    return False
                step = min(step, remaining)
            if self.source.wait_for_sync(step):
                return True
        return False

    def start_workers(self, workers: int) -> None:
        for i in range(workers):
            thread = threading.Thread(target=self.worker, daemon=True, name=f"worker-{i}")
            thread.start()
            self._workers.append(thread)
        self._running.set()

    def shut_down(self, timeout: Optional[float] = None) -> None:
        """Shut the queue down and wait for the workers to drain it."""
        logger.info("Shutting down controller...")
        self._running.clear()
        self.queue.shut_down()
        for thread in self._workers:
            thread.join(timeout)
        self._workers = []
        logger.info("Controller shutdown complete")

    def is_ready(self) -> bool:
        return self._running.is_set() and self.source.has_synced()

    def worker(self) -> None:
        while self.process_next_item():
            pass

    def process_next_item(self) -> bool:
        """
        Process one key from the queue.

        Returns:
            False once the queue has shut down, True otherwise
        """
        item, shutdown = self.queue.get()
        if shutdown:
            return False

        try:
            self._process(item)
        finally:
            self.queue.done(item)
        return True

    def _process(self, item) -> None:
        try:
            key = ReconcileKey.parse(item)
        except InvalidKeyError as e:
            # Retrying cannot fix a malformed key
            logger.error(f"Dropping malformed key {item!r}: {e}")
            self.queue.forget(item)
            return

        try:
            ok = self.synchronizer.reconcile(key)
        except Exception as e:
            logger.exception(f"Reconcile raised key={key}: {e}")
            ok = False

        if ok:
            self.queue.forget(item)
            return

        logger.warning(f"Reconcile will be retried key={key} (requeues: {self.queue.num_requeues(item) + 1})")
        self.queue.add_rate_limited(item)
