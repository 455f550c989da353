import threading
from contextlib import contextmanager


class KeyedLock:
    """
    One mutex per key. Holders of different keys never block each other.
    A key's mutex exists only while someone holds or waits for it.
    """

    def __init__(self):
        self._guard = threading.Lock()
        # key -> [mutex, holders and waiters]
        self._locks = {}

    def __len__(self):
        with self._guard:
            return len(self._locks)

    def _acquire_entry(self, key):
        with self._guard:
            entry = self._locks.get(key)
            if entry is None:
                entry = self._locks[key] = [threading.Lock(), 0]
            entry[1] += 1
            return entry

    def _release_entry(self, key, entry):
        with self._guard:
            entry[1] -= 1
            if entry[1] == 0:
                del self._locks[key]

    @contextmanager
    def hold(self, key):
        key = str(key)
        entry = self._acquire_entry(key)
        try:
            with entry[0]:
                yield
        finally:
            self._release_entry(key, entry)


# Serialises admission decisions per vehicle within this process. The vehicle
# row lock taken inside the transaction covers other processes.
vehicle_admission_locks = KeyedLock()
