"""Bounded event history shared by the background manager and the progress reducer."""

from collections import deque
from collections.abc import Iterator, Sequence
from typing import Generic, TypeVar

T = TypeVar("T")

MAX_EVENTS = 2000  # trim once the log grows past this
KEEP_EVENTS = 1500  # ...down to the newest this many


def trim_history(items: Sequence[T], max_events: int = MAX_EVENTS, keep: int = KEEP_EVENTS) -> tuple[T, ...]:
    """Apply the retention policy to an immutable sequence."""
    if len(items) > max_events:
        return tuple(items[-keep:])
    return tuple(items)


class EventLog(Generic[T]):
    """Append-only log that drops its oldest entries in bulk.

    Once the log holds more than ``max_events`` entries it is cut back to the
    newest ``keep``. Trimming in bulk (rather than a sliding window) keeps
    appends cheap while bounding memory for long generations.
    """

    def __init__(self, max_events: int = MAX_EVENTS, keep: int = KEEP_EVENTS):
        if keep > max_events:
            raise ValueError("keep must not exceed max_events")
        self.max_events = max_events
        self.keep = keep
        self._items: deque[T] = deque()

    def append(self, item: T) -> None:
        self._items.append(item)
        if len(self._items) > self.max_events:
            for _ in range(len(self._items) - self.keep):
                self._items.popleft()

    def snapshot(self) -> list[T]:
        return list(self._items)

    def clear(self) -> None:
        self._items.clear()

    def __len__(self) -> int:
        return len(self._items)

    def __iter__(self) -> Iterator[T]:
        return iter(self._items)

    def __getitem__(self, index: int) -> T:
        return self._items[index]
