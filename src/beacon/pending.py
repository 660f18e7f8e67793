# src/beacon/pending.py
"""Bounded pending queue for captured faults.

Holds faults between flushes. Insertion order is preserved and is the order
the collector receives them in.

Key design decisions:
- Ring buffer via deque(maxlen=N): automatic oldest-first eviction
- Sequence numbers: a flush acknowledges exactly the entries it sent
  (discard_through), so faults queued while the request was in flight
  survive a successful flush
- Correct overflow counting: check was_full BEFORE append (deque evicts during)
- Aggregate logging: one warning per log_interval evictions
"""

from collections import deque

import structlog

from beacon.config import get_internal_default
from beacon.records import FaultRecord

logger = structlog.get_logger(__name__)


class PendingQueue:
    """Ordered, bounded queue of faults awaiting delivery.

    Thread Safety:
        NOT thread-safe. The Beacon only touches it from its event loop.

    Example:
        queue = PendingQueue(max_size=1000)
        queue.append(record)
        batch, last_seq = queue.snapshot()
        # ... deliver batch ...
        queue.discard_through(last_seq)
    """

    def __init__(self, max_size: int | None = None) -> None:
        """Initialize the queue.

        Args:
            max_size: Maximum number of pending faults. When full, the oldest
                fault is evicted on append. Defaults to the internal queue
                bound.

        Raises:
            ValueError: If max_size < 1.
        """
        if max_size is None:
            max_size = int(get_internal_default("queue", "max_size"))
        if max_size < 1:
            raise ValueError(f"max_size must be >= 1, got {max_size}")
        self._entries: deque[tuple[int, FaultRecord]] = deque(maxlen=max_size)
        self._next_seq = 0
        self._dropped_count = 0
        self._last_logged_drop_count = 0
        self._log_interval = int(get_internal_default("queue", "log_interval"))

    def append(self, record: FaultRecord) -> None:
        """Append a record, evicting the oldest if the queue is full."""
        was_full = len(self._entries) == self._entries.maxlen
        self._entries.append((self._next_seq, record))
        self._next_seq += 1
        if was_full:
            self._dropped_count += 1
            if self._dropped_count - self._last_logged_drop_count >= self._log_interval:
                logger.warning(
                    "Beacon queue overflow - oldest faults dropped",
                    dropped_since_last_log=self._dropped_count - self._last_logged_drop_count,
                    dropped_total=self._dropped_count,
                    queue_size=self._entries.maxlen,
                )
                self._last_logged_drop_count = self._dropped_count

    def snapshot(self) -> tuple[list[FaultRecord], int]:
        """Copy the current contents without removing them.

        Returns:
            Tuple of (records in insertion order, sequence of the last record).
            The sequence is -1 when the queue is empty.
        """
        if not self._entries:
            return [], -1
        return [record for _, record in self._entries], self._entries[-1][0]

    def discard_through(self, seq: int) -> int:
        """Remove every entry with sequence <= seq.

        Entries appended after the snapshot that produced seq are kept.

        Returns:
            Number of entries removed.
        """
        removed = 0
        while self._entries and self._entries[0][0] <= seq:
            self._entries.popleft()
            removed += 1
        return removed

    def clear(self) -> int:
        """Remove every entry.

        Returns:
            Number of entries removed.
        """
        removed = len(self._entries)
        self._entries.clear()
        return removed

    def records(self) -> list[FaultRecord]:
        """Current contents in insertion order."""
        return [record for _, record in self._entries]

    @property
    def maxsize(self) -> int:
        # maxlen is always set in __init__
        return self._entries.maxlen  # type: ignore[return-value]

    @property
    def dropped_count(self) -> int:
        """Number of faults evicted due to overflow."""
        return self._dropped_count

    def __len__(self) -> int:
        return len(self._entries)
