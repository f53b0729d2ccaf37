import heapq
import itertools
import logging
import threading
import time
from collections import deque
from typing import Callable, Deque, Dict, Hashable, List, Optional, Set, Tuple

from .rate_limiter import RateLimiter, default_controller_rate_limiter

logger = logging.getLogger(__name__)


class WorkQueue:
    def __init__(self, name: str = ""):
        """
        Initialize work queue.

        Args:
            name: Queue name used in log lines

        Invariants:
        1. An item is in the FIFO at most once (dirty set)
        2. An item being processed is never handed to a second consumer
        3. An item added while processing re-enters the FIFO on done()
        """
        self.name = name
        self._cond = threading.Condition()
        self._queue: Deque[Hashable] = deque()
        self._dirty: Set[Hashable] = set()
        self._processing: Set[Hashable] = set()
        self._shutting_down = False

    def add(self, item: Hashable) -> None:
        """
        Mark item as needing processing.

        No-op if the item is already pending. If it is currently being
        processed it is remembered and handed out again after done().
        """
        with self._cond:
            if self._shutting_down:
                return
            if item in self._dirty:
                return

            self._dirty.add(item)
            if item in self._processing:
                return

            self._queue.append(item)
            self._cond.notify()

    def get(self) -> Tuple[Optional[Hashable], bool]:
        """
        Block until an item is available or the queue shuts down.

        Returns:
            Tuple of (item, shutting_down). Pending items are still
            handed out after shut_down(); (None, True) is returned once
            the queue is drained.
        """
        with self._cond:
            while not self._queue and not self._shutting_down:
                self._cond.wait()

            if not self._queue:
                return None, True

            item = self._queue.popleft()
            self._processing.add(item)
            self._dirty.discard(item)
            return item, False

    def done(self, item: Hashable) -> None:
        """Release the processing mark for item."""
        with self._cond:
            self._processing.discard(item)
            if item in self._dirty:
                self._queue.append(item)
                self._cond.notify()

    def shut_down(self) -> None:
        """Stop accepting items and wake every blocked get()."""
        with self._cond:
            self._shutting_down = True
            self._cond.notify_all()
        logger.info(f"Queue {self.name or '<unnamed>'} shutting down")

    def shutting_down(self) -> bool:
        with self._cond:
            return self._shutting_down

    def __len__(self) -> int:
        with self._cond:
            return len(self._queue)


class RateLimitingQueue(WorkQueue):
    """Work queue with delayed insertion and rate-limited retries."""

    def __init__(
        self,
        rate_limiter: Optional[RateLimiter] = None,
        name: str = "",
        clock: Callable[[], float] = time.monotonic,
    ):
        super().__init__(name)
        self.rate_limiter = rate_limiter or default_controller_rate_limiter()
        self._clock = clock

        # Delayed items: heap of (ready_at, seq, item) plus the earliest
        # ready_at per item so duplicates collapse.
        self._delay_cond = threading.Condition()
        self._heap: List[Tuple[float, int, Hashable]] = []
        self._waiting: Dict[Hashable, float] = {}
        self._seq = itertools.count()

        self._delay_thread = threading.Thread(
            target=self._waiting_loop, daemon=True, name=f"{name or 'queue'}-delay"
        )
        self._delay_thread.start()

    def add_after(self, item: Hashable, delay: float) -> None:
        """Add item once delay seconds have passed."""
        if self.shutting_down():
            return

        if delay <= 0:
            self.add(item)
            return

        ready_at = self._clock() + delay
        with self._delay_cond:
            existing = self._waiting.get(item)
            if existing is not None and existing <= ready_at:
                return

            self._waiting[item] = ready_at
            heapq.heappush(self._heap, (ready_at, next(self._seq), item))
            self._delay_cond.notify()

    def add_rate_limited(self, item: Hashable) -> None:
        """Add item after the delay chosen by the rate limiter."""
        self.add_after(item, self.rate_limiter.when(item))

    def forget(self, item: Hashable) -> None:
        """Clear retry state for item."""
        self.rate_limiter.forget(item)

    def num_requeues(self, item: Hashable) -> int:
        return self.rate_limiter.num_requeues(item)

    def shut_down(self, timeout: float = 1.0) -> None:
        """Shut down and wait up to timeout seconds for the delay thread to exit."""
        super().shut_down()
        with self._delay_cond:
            self._delay_cond.notify_all()
        if self._delay_thread is not threading.current_thread():
            self._delay_thread.join(timeout)

    def _waiting_loop(self) -> None:
        """Move delayed items into the queue as they become ready."""
        while True:
            ready: List[Hashable] = []

            with self._delay_cond:
                # Checked under the delay lock so shut_down's notify is never missed
                if self.shutting_down():
                    return
                if not self._heap:
                    self._delay_cond.wait()
                    continue

                now = self._clock()
                while self._heap and self._heap[0][0] <= now:
                    ready_at, _, item = heapq.heappop(self._heap)
                    # Superseded by an earlier schedule for the same item
                    if self._waiting.get(item) != ready_at:
                        continue
                    del self._waiting[item]
                    ready.append(item)

                if not ready and self._heap:
                    self._delay_cond.wait(timeout=self._heap[0][0] - now)

            for item in ready:
                self.add(item)
