"""Tests for yieldbot.cli.engine (Typer CliRunner)."""

from __future__ import annotations

import sys
from typing import TYPE_CHECKING

import pandas as pd
import pytest
from loguru import logger
from typer.testing import CliRunner

from yieldbot.cli.engine import app

if TYPE_CHECKING:
    from collections.abc import Iterator
    from pathlib import Path

runner = CliRunner()


@pytest.fixture(autouse=True)
def _restore_logger() -> Iterator[None]:
    yield
    logger.remove()
    logger.add(sys.stderr)


class TestSimulate:
    def test_short_run(self) -> None:
        result = runner.invoke(app, ["simulate", "-n", "3"])
        assert result.exit_code == 0, result.output
        assert "Market Snapshots" in result.output
        assert "Scheduled Next Executions" in result.output

    def test_shock_and_export(self, tmp_path: Path) -> None:
        out = tmp_path / "history.csv"
        result = runner.invoke(
            app,
            ["simulate", "-n", "4", "--shock-at", "2", "--export", str(out)],
        )
        assert result.exit_code == 0, result.output
        frame = pd.read_csv(out)
        assert frame["emergency"].any()
        assert {"strategy_id", "net_benefit", "transfer_count"} <= set(frame.columns)

    def test_invalid_algorithm(self) -> None:
        result = runner.invoke(app, ["simulate", "--algorithm", "moonshot"])
        assert result.exit_code != 0


class TestStatus:
    def test_prints_settings(self) -> None:
        result = runner.invoke(app, ["status"])
        assert result.exit_code == 0
        assert "max_tasks_per_tick" in result.output
