"""RingBuffer 테스트 — overwrite-oldest, 순서, 누적 카운터."""

from __future__ import annotations

import pytest

from yieldbot.core.ring_buffer import RingBuffer


class TestRingBufferBasics:
    def test_rejects_zero_capacity(self) -> None:
        with pytest.raises(ValueError, match="capacity"):
            RingBuffer[int](0)

    def test_empty(self) -> None:
        buf = RingBuffer[int](3)
        assert len(buf) == 0
        assert buf.latest() is None
        assert buf.to_list() == []
        assert not buf.is_full

    def test_append_preserves_order(self) -> None:
        buf = RingBuffer[int](3)
        buf.extend([1, 2])
        assert buf.to_list() == [1, 2]
        assert buf.latest() == 2


class TestRingBufferOverwrite:
    def test_overwrites_oldest(self) -> None:
        buf = RingBuffer[int](3)
        buf.extend([1, 2, 3, 4, 5])
        assert buf.to_list() == [3, 4, 5]
        assert buf.is_full
        assert len(buf) == 3
        assert buf.latest() == 5

    def test_total_appended_counts_overwritten(self) -> None:
        buf = RingBuffer[int](2)
        buf.extend(range(7))
        assert buf.total_appended == 7
        assert buf.capacity == 2

    def test_clear_keeps_total(self) -> None:
        buf = RingBuffer[str](2)
        buf.extend(["a", "b"])
        buf.clear()
        assert len(buf) == 0
        assert buf.total_appended == 2
        buf.append("c")
        assert buf.to_list() == ["c"]
