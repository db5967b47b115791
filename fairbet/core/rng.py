import os
from typing import Callable, List, TypeVar

from fairbet.core.exceptions import EntropyError

T = TypeVar("T")


class SecureRandom:
    """
    Unbiased integer sampling on top of a cryptographic entropy source.

    Draws the fewest whole bytes that cover the requested range and rejects any
    value at or above the largest multiple of the range that fits in those
    bytes, so `value % range` is uniform.
    """

    def __init__(self, entropy: Callable[[int], bytes] = os.urandom):
        self._entropy = entropy

    def _read(self, n: int) -> int:
        try:
            raw = self._entropy(n)
        except OSError as exc:
            raise EntropyError(f"Entropy source failed: {exc}") from exc
        if len(raw) != n:
            raise EntropyError(f"Entropy source returned {len(raw)} bytes, expected {n}")
        return int.from_bytes(raw, "big")

    def sample(self, min_val: int, max_val: int) -> int:
        """Returns a random integer in the range [min_val, max_val] (inclusive)."""
        if min_val > max_val:
            raise ValueError("min_val must be less than or equal to max_val")

        span = max_val - min_val + 1
        if span == 1:
            return min_val

        bytes_needed = ((span - 1).bit_length() + 7) // 8
        space = 256 ** bytes_needed
        cutoff = space - (space % span)

        value = self._read(bytes_needed)
        while value >= cutoff:
            value = self._read(bytes_needed)

        return min_val + value % span

    def shuffle(self, items: List[T]) -> List[T]:
        """Returns a new list in a uniformly random order (Fisher-Yates)."""
        shuffled = list(items)
        for i in range(len(shuffled) - 1, 0, -1):
            j = self.sample(0, i)
            shuffled[i], shuffled[j] = shuffled[j], shuffled[i]
        return shuffled

    def distinct(self, count: int, min_val: int, max_val: int) -> List[int]:
        """Draws `count` unique integers from [min_val, max_val], retrying duplicates."""
        if count > max_val - min_val + 1:
            raise ValueError("count exceeds the size of the range")
        picked: List[int] = []
        while len(picked) < count:
            value = self.sample(min_val, max_val)
            if value not in picked:
                picked.append(value)
        return picked


rng = SecureRandom()
