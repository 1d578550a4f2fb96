"""Fixed-capacity ring buffer with overwrite-oldest semantics.

가격 샘플 버퍼와 실행 이력(ExecutionLedger)이 공유하는 bounded 컨테이너입니다.
append는 O(1)이며 배열 shift 없이 write index만 이동합니다.

Rules Applied:
    - #10 Python Standards: __slots__, PEP 695 generics
"""

from __future__ import annotations

from collections.abc import Iterator
from typing import Generic, TypeVar


T = TypeVar("T")


class RingBuffer(Generic[T]):
    """Overwrite-oldest ring buffer.

    Args:
        capacity: 최대 보관 개수 (>= 1)
    """

    __slots__ = ("_capacity", "_count", "_head", "_slots", "_total")

    def __init__(self, capacity: int) -> None:
        if capacity < 1:
            msg = f"RingBuffer capacity must be >= 1, got {capacity}"
            raise ValueError(msg)
        self._capacity = capacity
        self._slots: list[T | None] = [None] * capacity
        self._head = 0  # 다음 write 위치
        self._count = 0
        self._total = 0

    def append(self, item: T) -> None:
        """항목 추가. 가득 차면 가장 오래된 항목을 덮어씁니다."""
        self._slots[self._head] = item
        self._head = (self._head + 1) % self._capacity
        self._count = min(self._count + 1, self._capacity)
        self._total += 1

    def extend(self, items: Iterator[T] | list[T] | tuple[T, ...]) -> None:
        """여러 항목을 순서대로 추가."""
        for item in items:
            self.append(item)

    def latest(self) -> T | None:
        """가장 최근 항목 (비어 있으면 None)."""
        if self._count == 0:
            return None
        return self._slots[(self._head - 1) % self._capacity]

    def to_list(self) -> list[T]:
        """오래된 순 → 최신 순 리스트."""
        return list(self)

    def clear(self) -> None:
        """모든 항목 제거 (누적 카운터는 유지)."""
        self._slots = [None] * self._capacity
        self._head = 0
        self._count = 0

    @property
    def capacity(self) -> int:
        """최대 보관 개수."""
        return self._capacity

    @property
    def is_full(self) -> bool:
        """버퍼가 가득 찼는지 여부."""
        return self._count == self._capacity

    @property
    def total_appended(self) -> int:
        """지금까지 append된 총 개수 (덮어쓴 항목 포함)."""
        return self._total

    def __len__(self) -> int:
        return self._count

    def __iter__(self) -> Iterator[T]:
        start = (self._head - self._count) % self._capacity
        for offset in range(self._count):
            item = self._slots[(start + offset) % self._capacity]
            yield item  # type: ignore[misc]
