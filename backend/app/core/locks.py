"""Per-contract locking so concurrent edits to one contract are serialized."""

from collections.abc import Iterator
from contextlib import contextmanager
from threading import Lock


class ContractLockRegistry:
    """In-memory registry of one lock per contract id.

    Edits to different contracts proceed in parallel; edits to the same
    contract run their read-modify-write sequence one at a time. An entry
    lives only while some caller holds or waits on it.
    """

    def __init__(self) -> None:
        # contract id -> [lock, number of holders and waiters]
        self._locks: dict[str, list] = {}
        self._guard = Lock()

    def __len__(self) -> int:
        with self._guard:
            return len(self._locks)

    def _acquire_entry(self, contract_id: str) -> Lock:
        with self._guard:
            entry = self._locks.setdefault(contract_id, [Lock(), 0])
            entry[1] += 1
            return entry[0]

    def _release_entry(self, contract_id: str) -> None:
        with self._guard:
            entry = self._locks.get(contract_id)
            if entry is None:
                return
            entry[1] -= 1
            if entry[1] <= 0:
                del self._locks[contract_id]

    @contextmanager
    def hold(self, contract_id: str) -> Iterator[None]:
        lock = self._acquire_entry(contract_id)
        try:
            with lock:
                yield
        finally:
            self._release_entry(contract_id)

    def reset(self) -> None:
        """Clear all tracked locks (useful for testing)."""
        with self._guard:
            self._locks.clear()


contract_locks = ContractLockRegistry()
