import hashlib
import threading
from collections import OrderedDict

from app.config import settings


def compute_dedup_key(
    kind: str,
    action: str | None,
    delivery_id: str,
    pr_number: int,
    merge_commit_sha: str | None,
) -> str:
    parts = [kind, action or "", delivery_id, str(pr_number), merge_commit_sha or ""]
    return hashlib.sha256("|".join(parts).encode()).hexdigest()


class DeliveryDeduplicator:
    """Bounded LRU set of already processed event keys.

    When an insert pushes the size above `capacity`, the
    `max(1, int(capacity * evict_fraction))` least recently seen keys are
    dropped. A repeated key counts as seen again.
    """

    def __init__(
        self, capacity: int | None = None, evict_fraction: float | None = None
    ):
        self.capacity = settings.dedup_capacity if capacity is None else capacity
        fraction = (
            settings.dedup_evict_fraction if evict_fraction is None else evict_fraction
        )
        if self.capacity < 1:
            raise ValueError("capacity must be at least 1")
        if not 0 <= fraction <= 1:
            raise ValueError("evict_fraction must be between 0 and 1")
        self.evict_count = max(1, int(self.capacity * fraction))
        self._keys: OrderedDict[str, None] = OrderedDict()
        self._lock = threading.Lock()

    def check_and_insert(self, key: str) -> bool:
        """Record `key`; return False if it was already recorded."""
        with self._lock:
            if key in self._keys:
                self._keys.move_to_end(key)
                return False
            self._keys[key] = None
            if len(self._keys) > self.capacity:
                for _ in range(self.evict_count):
                    self._keys.popitem(last=False)
            return True

    def __contains__(self, key: str) -> bool:
        with self._lock:
            return key in self._keys

    def __len__(self) -> int:
        with self._lock:
            return len(self._keys)

    def clear(self) -> None:
        with self._lock:
            self._keys.clear()
