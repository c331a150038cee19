"""Tests for the bounded feed-item history."""

import pytest

from torrent_courier.core.history import MemoryHistory


class TestAdd:
    def test_first_add_returns_true(self):
        history = MemoryHistory(max_len=10)
        assert history.add("Golumpa Dub 1080p") is True
        assert "Golumpa Dub 1080p" in history

    def test_repeated_add_returns_false(self):
        history = MemoryHistory(max_len=10)
        history.add("a")
        assert history.add("a") is False
        assert history.add("a") is False
        assert len(history) == 1

    def test_add_never_evicts(self):
        history = MemoryHistory(max_len=2)
        for key in "abcde":
            history.add(key)
        assert len(history) == 5


class TestCleanup:
    def test_cleanup_caps_size(self):
        history = MemoryHistory(max_len=3)
        for key in "abcdef":
            history.add(key)

        dropped = history.cleanup()

        assert dropped == 3
        assert len(history) == 3

    def test_cleanup_evicts_oldest_first(self):
        history = MemoryHistory(max_len=2)
        for key in ("old", "middle", "new"):
            history.add(key)

        history.cleanup()

        assert "old" not in history
        assert "middle" in history
        assert "new" in history

    def test_evicted_key_can_be_added_again(self):
        history = MemoryHistory(max_len=1)
        history.add("a")
        history.add("b")
        history.cleanup()

        assert history.add("a") is True

    def test_cleanup_under_cap_is_noop(self):
        history = MemoryHistory(max_len=5)
        history.add("a")
        assert history.cleanup() == 0
        assert len(history) == 1


def test_rejects_non_positive_max_len():
    with pytest.raises(ValueError):
        MemoryHistory(max_len=0)
