"""Tests for TransferCostModel."""

from __future__ import annotations

import pytest
from pydantic import ValidationError

from yieldbot.config.settings import EngineSettings
from yieldbot.strategy.cost_model import TransferCostModel
from yieldbot.strategy.models import TransferInstruction


class TestTransferCostModel:
    def test_single_transfer(self) -> None:
        model = TransferCostModel(fixed_cost=1.0, cost_bps=2.0)
        assert model.transfer_cost(10_000.0) == pytest.approx(3.0)

    def test_negative_amount_uses_magnitude(self) -> None:
        model = TransferCostModel(fixed_cost=0.0, cost_bps=10.0)
        assert model.transfer_cost(-1_000.0) == pytest.approx(1.0)

    def test_estimate_sums_instructions(self) -> None:
        model = TransferCostModel(fixed_cost=0.5, cost_bps=0.0)
        instructions = [TransferInstruction("a", "b", 10.0), TransferInstruction("b", "c", 20.0)]
        assert model.estimate(instructions) == pytest.approx(1.0)
        assert model.estimate([]) == 0.0

    def test_from_settings(self, settings: EngineSettings) -> None:
        model = TransferCostModel.from_settings(settings)
        assert model.fixed_cost == settings.transfer_fixed_cost
        assert model.cost_bps == settings.transfer_cost_bps

    def test_negative_cost_rejected(self) -> None:
        with pytest.raises(ValidationError):
            TransferCostModel(fixed_cost=-1.0)
