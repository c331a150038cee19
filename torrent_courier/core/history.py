"""
Bounded record of feed item titles that have already been handed out.
"""

from collections import OrderedDict


class MemoryHistory:
    """
    An insertion-ordered set of keys with a soft size cap.

    `add` never evicts; growth is trimmed by `cleanup`, which drops the oldest
    keys first. The scanner calls both from a single task, so no locking is done.
    """

    def __init__(self, max_len: int):
        if max_len < 1:
            raise ValueError("max_len must be at least 1")
        self.max_len = max_len
        self._records: OrderedDict[str, None] = OrderedDict()

    def add(self, key: str) -> bool:
        """Records `key`. Returns False if it was already present."""
        if key in self._records:
            return False
        self._records[key] = None
        return True

    def cleanup(self) -> int:
        """Evicts the oldest keys beyond `max_len`. Returns how many were dropped."""
        dropped = 0
        while len(self._records) > self.max_len:
            self._records.popitem(last=False)
            dropped += 1
        return dropped

    def __contains__(self, key: str) -> bool:
        return key in self._records

    def __len__(self) -> int:
        return len(self._records)
