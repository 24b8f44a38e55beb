"""Fixed-capacity FIFO history backed by a numpy array and a write cursor."""

import numpy as np


class RingBuffer:
    """Circular float buffer with O(1) push and oldest-first eviction.

    Long sessions push one value per frame indefinitely, so memory stays at
    ``capacity`` floats no matter how many values go in.
    """

    def __init__(self, capacity: int):
        if capacity < 1:
            raise ValueError(f"capacity must be at least 1, got {capacity}")
        self._data = np.zeros(capacity, dtype=np.float64)
        self._cursor = 0
        self._count = 0

    @property
    def capacity(self) -> int:
        return len(self._data)

    def __len__(self) -> int:
        return self._count

    def __bool__(self) -> bool:
        return self._count > 0

    def push(self, value: float) -> None:
        """Append a value, overwriting the oldest one when full."""
        self._data[self._cursor] = value
        self._cursor = (self._cursor + 1) % len(self._data)
        if self._count < len(self._data):
            self._count += 1

    def values(self) -> np.ndarray:
        """Return a copy of the stored values, oldest first."""
        if self._count < len(self._data):
            return self._data[: self._count].copy()
        return np.concatenate((self._data[self._cursor :], self._data[: self._cursor]))

    def latest(self, default: float = 0.0) -> float:
        """Most recently pushed value, or ``default`` when empty."""
        if not self._count:
            return default
        return float(self._data[self._cursor - 1])

    def mean(self) -> float:
        """Mean of the stored values; 0.0 when empty."""
        if not self._count:
            return 0.0
        return float(np.mean(self._data[: self._count]))

    def clear(self) -> None:
        self._data.fill(0.0)
        self._cursor = 0
        self._count = 0

    def __iter__(self):
        return iter(self.values().tolist())

    def __repr__(self) -> str:
        return f"RingBuffer(capacity={self.capacity}, size={self._count})"
