"""Tests for ExecutionLedger."""

from __future__ import annotations

from datetime import UTC, datetime, timedelta

import pytest

from yieldbot.strategy.ledger import ExecutionLedger
from yieldbot.strategy.models import ExecutionRecord, TransferLeg

T0 = datetime(2024, 1, 1, tzinfo=UTC)


def _make_record(
    strategy_id: str = "s1", minutes: int = 0, *, success: bool = True
) -> ExecutionRecord:
    return ExecutionRecord(
        strategy_id=strategy_id,
        asset="USDC",
        transfers=(TransferLeg("a", "b", 100.0), TransferLeg("a", "c", 50.0, success=success)),
        total_cost=1.0,
        predicted_gain=3.0,
        net_benefit=2.0,
        timestamp=T0 + timedelta(minutes=minutes),
        success=success,
        error=None if success else "boom",
    )


class TestRetention:
    def test_invalid_retention(self) -> None:
        with pytest.raises(ValueError, match="retention"):
            ExecutionLedger(retention=0)

    def test_oldest_overwritten(self) -> None:
        ledger = ExecutionLedger(retention=3)
        for i in range(5):
            ledger.append(_make_record(minutes=i))

        history = ledger.history("s1")
        assert [r.timestamp for r in history] == [T0 + timedelta(minutes=i) for i in (2, 3, 4)]
        assert ledger.total_recorded("s1") == 5

    def test_per_strategy_buffers(self) -> None:
        ledger = ExecutionLedger(retention=2)
        ledger.append(_make_record("s1"))
        ledger.append(_make_record("s2"))
        ledger.append(_make_record("s2", 1))
        ledger.append(_make_record("s2", 2))
        assert len(ledger.history("s1")) == 1
        assert len(ledger.history("s2")) == 2
        assert ledger.total_recorded() == 4
        assert ledger.strategy_ids() == ["s1", "s2"]


class TestQueries:
    def test_unknown_strategy(self) -> None:
        ledger = ExecutionLedger()
        assert ledger.history("missing") == []
        assert ledger.latest("missing") is None
        assert ledger.total_recorded("missing") == 0

    def test_limit(self) -> None:
        ledger = ExecutionLedger()
        for i in range(4):
            ledger.append(_make_record(minutes=i))
        assert [r.timestamp.minute for r in ledger.history("s1", limit=2)] == [2, 3]
        assert ledger.history("s1", limit=0) == []
        assert ledger.latest("s1").timestamp.minute == 3  # type: ignore[union-attr]


class TestFrame:
    def test_empty_frame_has_columns(self) -> None:
        frame = ExecutionLedger().to_frame()
        assert frame.empty
        assert "net_benefit" in frame.columns

    def test_rows_sorted_by_timestamp(self) -> None:
        ledger = ExecutionLedger()
        ledger.append(_make_record("s2", 5))
        ledger.append(_make_record("s1", 1, success=False))
        frame = ledger.to_frame()

        assert list(frame["strategy_id"]) == ["s1", "s2"]
        assert list(frame["moved_amount"]) == [100.0, 150.0]
        assert list(frame["transfer_count"]) == [2, 2]
        assert frame.loc[0, "error"] == "boom"

    def test_single_strategy(self) -> None:
        ledger = ExecutionLedger()
        ledger.append(_make_record("s1"))
        ledger.append(_make_record("s2"))
        assert list(ledger.to_frame("s2")["strategy_id"]) == ["s2"]


class TestRecordSerialization:
    def test_to_dict(self) -> None:
        data = _make_record(success=False).to_dict()
        assert data["timestamp"] == T0.isoformat()
        assert data["transfers"][1]["success"] is False  # type: ignore[index]
        assert data["error"] == "boom"
