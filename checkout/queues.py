# Copyright (c) 2025
# MIT License
# -----------------------------------------------------------------------------
# queues.py
# -----------------------------------------------------------------------------
# Purpose:
#   Minimal discrete-event primitives: the three event kinds, the Event
#   notice, and the Future Event List (FEL) that drives the clock.
#
# Design notes:
#   - Events are ordered by (time, rank, seq). ARRIVE and DEPART share rank 0
#     and STOP has rank 1, so a Stop at time T fires after every other event
#     scheduled at exactly T. Among equal (time, rank) pairs the insertion
#     sequence number decides, i.e. FIFO.
#   - The FEL is a heapq min-heap; schedule/pop are O(log n).
#
# Usage:
#   from checkout.queues import ARRIVE, DEPART, STOP, Event, FutureEventList
# -----------------------------------------------------------------------------

from __future__ import annotations
import heapq, itertools, math
from typing import Iterator, List

ARRIVE = "arrive"
DEPART = "depart"
STOP = "stop"

EVENT_KINDS = (ARRIVE, DEPART, STOP)

# same-time ordering: everything else first, then the stop notice
_RANK = {ARRIVE: 0, DEPART: 0, STOP: 1}

class Event:
    """Event notice for the FEL. Carries only its time and kind."""
    __slots__ = ("t", "kind", "seq")
    def __init__(self, t: float, kind: str, seq: int = 0):
        if kind not in _RANK:
            raise ValueError(f"Unknown event kind: {kind!r}")
        self.t = t; self.kind = kind; self.seq = seq

    def key(self):
        return (self.t, _RANK[self.kind], self.seq)

    def __lt__(self, other: "Event"):
        return self.key() < other.key()

    def __repr__(self):
        return f"Event(t={self.t!r}, kind={self.kind!r}, seq={self.seq})"

class FutureEventList:
    """Time-ordered priority queue of pending events.

    Attributes
    ----------
    heap : list[Event]
        Min-heap of scheduled events, keyed by Event.key().
    """
    def __init__(self):
        self.heap: List[Event] = []
        self._counter = itertools.count()

    def schedule(self, t: float, kind: str) -> Event:
        """Create an event at time t and insert it. Returns the event."""
        ev = Event(t, kind, next(self._counter))
        heapq.heappush(self.heap, ev)
        return ev

    def push(self, ev: Event):
        # Re-stamp so that insertion order stays the final tie-break
        ev.seq = next(self._counter)
        heapq.heappush(self.heap, ev)

    def pop_min(self) -> Event:
        if not self.heap:
            raise IndexError("pop_min from an empty future event list")
        return heapq.heappop(self.heap)

    def peek_time(self) -> float:
        return self.heap[0].t if self.heap else math.inf

    def is_empty(self) -> bool:
        return not self.heap

    def clear(self):
        self.heap.clear()

    def __len__(self) -> int:
        return len(self.heap)

    def __iter__(self) -> Iterator[Event]:
        # pending events in pop order, without consuming them
        return iter(sorted(self.heap))
