"""
Process-local counters for the rate/abuse gate.

Entries are spread across independently locked shards so concurrent
requests for different keys do not contend, and increments for the same
key are never lost.
"""
import threading
from dataclasses import dataclass
from typing import Callable, Dict, Optional


@dataclass
class CounterEntry:
    count: int
    first_seen: float
    last_seen: float


class _Shard:
    __slots__ = ('lock', 'entries')

    def __init__(self):
        self.lock = threading.Lock()
        self.entries: Dict[str, CounterEntry] = {}


class ShardedCounterMap:
    """String-keyed map of (count, first_seen, last_seen) entries"""

    def __init__(self, shards: int = 16):
        self._shards = [_Shard() for _ in range(shards)]

    def _shard(self, key: str) -> _Shard:
        return self._shards[hash(key) % len(self._shards)]

    def hit(self, key: str, window: float, now: float, amount: int = 1) -> CounterEntry:
        """Increment the fixed-window counter for key, opening a new window if the old one elapsed"""
        shard = self._shard(key)
        with shard.lock:
            entry = shard.entries.get(key)
            if entry is None or now - entry.first_seen >= window:
                entry = CounterEntry(0, now, now)
                shard.entries[key] = entry
            entry.count += amount
            entry.last_seen = now
            return CounterEntry(entry.count, entry.first_seen, entry.last_seen)

    def peek(self, key: str, window: float, now: float) -> Optional[CounterEntry]:
        """Current window for key, or None when absent or elapsed"""
        shard = self._shard(key)
        with shard.lock:
            entry = shard.entries.get(key)
            if entry is None or now - entry.first_seen >= window:
                return None
            return CounterEntry(entry.count, entry.first_seen, entry.last_seen)

    def update(self, key: str, fn: Callable[[Optional[CounterEntry]], Optional[CounterEntry]]) -> Optional[CounterEntry]:
        """Atomic read-modify-write; returning None from fn removes the key"""
        shard = self._shard(key)
        with shard.lock:
            current = shard.entries.get(key)
            snapshot = CounterEntry(current.count, current.first_seen, current.last_seen) if current else None
            result = fn(snapshot)
            if result is None:
                shard.entries.pop(key, None)
                return None
            shard.entries[key] = result
            return CounterEntry(result.count, result.first_seen, result.last_seen)

    def reset(self, key: str):
        shard = self._shard(key)
        with shard.lock:
            shard.entries.pop(key, None)

    def sweep(self, max_age: float, now: float) -> int:
        """Evict entries not touched within max_age seconds"""
        removed = 0
        for shard in self._shards:
            with shard.lock:
                stale = [key for key, entry in shard.entries.items() if now - entry.last_seen >= max_age]
                for key in stale:
                    del shard.entries[key]
                removed += len(stale)
        return removed

    def max_count(self) -> int:
        """Highest count held by any entry, 0 when empty"""
        highest = 0
        for shard in self._shards:
            with shard.lock:
                for entry in shard.entries.values():
                    highest = max(highest, entry.count)
        return highest

    def __len__(self):
        total = 0
        for shard in self._shards:
            with shard.lock:
                total += len(shard.entries)
        return total
