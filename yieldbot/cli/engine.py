"""Typer CLI for the rebalancing engine (paper mode).

Commands:
    - simulate: SimulatedMarket 기반 N tick 실행 후 결과 출력
    - status: 유효 EngineSettings 출력

Rules Applied:
    - #18 Typer CLI: Annotated syntax, Rich UI
    - #15 Logging Standards: Loguru structured logging
"""

from __future__ import annotations

from pathlib import Path
from typing import TYPE_CHECKING, Annotated

import typer
from loguru import logger
from rich.console import Console
from rich.table import Table

from yieldbot.config.settings import get_settings
from yieldbot.core.logger import setup_logger
from yieldbot.sim.engine import DEMO_ASSET, build_paper_engine, seed_demo
from yieldbot.sim.market import SimulatedMarket
from yieldbot.strategy.models import ScoringAlgorithm

if TYPE_CHECKING:
    from yieldbot.sim.engine import PaperEngine

console = Console()
app = typer.Typer(help="Capital rebalancing engine (paper mode)")

_SHOCK_RISK = 95.0


# ---------------------------------------------------------------------------
# Display helpers
# ---------------------------------------------------------------------------


def _display_snapshots(engine: PaperEngine) -> None:
    """asset별 최신 시장 snapshot 테이블."""
    table = Table(title="Market Snapshots")
    table.add_column("Asset", style="cyan")
    table.add_column("Price", justify="right")
    table.add_column("Vol (bps)", justify="right")
    table.add_column("Trend (bps)", justify="right")
    table.add_column("Risk", style="red", justify="right")
    table.add_column("Flags")

    for asset, snap in engine.monitor.snapshots().items():
        flags = [
            name
            for name, on in (
                ("bullish", snap.is_bullish),
                ("bearish", snap.is_bearish),
                ("high-vol", snap.is_high_volatility),
            )
            if on
        ]
        table.add_row(
            asset,
            f"{snap.price:.4f}",
            f"{snap.volatility_bps:.1f}",
            f"{snap.trend_bps:.1f}",
            f"{snap.risk_score:.1f}",
            ", ".join(flags) or "-",
        )
    console.print(table)


def _display_executions(engine: PaperEngine, limit: int) -> None:
    """최근 리밸런스 실행 테이블."""
    frame = engine.ledger.to_frame()
    table = Table(title=f"Rebalance Executions (last {limit})")
    table.add_column("Time", style="cyan")
    table.add_column("Strategy")
    table.add_column("Status")
    table.add_column("Transfers", justify="right")
    table.add_column("Moved", justify="right")
    table.add_column("Net Benefit", style="green", justify="right")

    for row in frame.tail(limit).itertuples(index=False):
        status = "[red]FAILED[/red]" if not row.success else "OK"
        if row.emergency:
            status += " [yellow]EMERGENCY[/yellow]"
        table.add_row(
            row.timestamp.strftime("%Y-%m-%d %H:%M"),
            row.strategy_id,
            status,
            str(row.transfer_count),
            f"{row.moved_amount:,.2f}",
            f"{row.net_benefit:,.4f}",
        )
    console.print(table)


def _display_automation(engine: PaperEngine) -> None:
    """자동화 상태/성과 지표 테이블."""
    status = engine.api.automation_status()
    metrics = status.metrics
    table = Table(title="Automation")
    table.add_column("Metric", style="cyan")
    table.add_column("Value", style="green")

    table.add_row("Healthy", str(status.is_healthy))
    table.add_row("Emergency Mode", str(status.emergency_mode))
    table.add_row("Ticks", str(status.tick_count))
    table.add_row("Active Tasks", f"{status.active_tasks}/{status.total_tasks}")
    table.add_row("Executions", str(metrics.total_executions))
    table.add_row("Success Rate", f"{metrics.success_rate:.1%}")
    table.add_row("Average Cost", f"{metrics.average_cost:.4f}")
    table.add_row("Uptime", f"{metrics.uptime_ratio:.1%}")
    table.add_row("Slippage Guard Trips", str(metrics.slippage_guard_trips))
    console.print(table)


def _display_schedule(engine: PaperEngine) -> None:
    """다음 실행 예정 테이블."""
    table = Table(title="Scheduled Next Executions")
    table.add_column("Task", style="cyan", justify="right")
    table.add_column("Type")
    table.add_column("Due At")
    table.add_column("Priority", justify="right")

    for item in engine.api.scheduled_next_executions(engine.market.now):
        table.add_row(
            str(item.task_id),
            item.task_type.value,
            item.due_at.strftime("%Y-%m-%d %H:%M"),
            str(item.priority),
        )
    console.print(table)


# ---------------------------------------------------------------------------
# Commands
# ---------------------------------------------------------------------------


@app.command()
def simulate(
    ticks: Annotated[int, typer.Option("--ticks", "-n", min=1, help="Number of ticks")] = 48,
    algorithm: Annotated[
        ScoringAlgorithm, typer.Option("--algorithm", "-a", help="Scoring algorithm")
    ] = ScoringAlgorithm.YIELD_OPTIMIZATION,
    capital: Annotated[float, typer.Option("--capital", min=1.0, help="Managed capital")] = 1e6,
    seed: Annotated[int, typer.Option("--seed", help="Random seed")] = 42,
    shock_at: Annotated[
        int | None, typer.Option("--shock-at", help="Tick at which external risk spikes")
    ] = None,
    failure_rate: Annotated[
        float, typer.Option("--failure-rate", min=0.0, max=1.0, help="Transfer failure rate")
    ] = 0.0,
    export: Annotated[
        Path | None, typer.Option("--export", help="Write execution history CSV")
    ] = None,
    verbose: Annotated[bool, typer.Option("--verbose", "-V", help="Enable verbose output")] = False,
) -> None:
    """Run the engine against a simulated market for N ticks."""
    setup_logger(console_level="DEBUG" if verbose else "WARNING", enable_file=False)

    settings = get_settings()
    market = SimulatedMarket(seed=seed, failure_rate=failure_rate)
    engine = build_paper_engine(settings, market)
    seed_demo(engine, algorithm, capital)

    for tick in range(1, ticks + 1):
        if shock_at is not None and tick == shock_at:
            logger.warning("Injecting risk shock at tick {}", tick)
            market.set_risk(DEMO_ASSET, _SHOCK_RISK)
        engine.step()

    _display_snapshots(engine)
    _display_executions(engine, limit=10)
    _display_automation(engine)
    _display_schedule(engine)

    if export is not None:
        engine.ledger.to_frame().to_csv(export, index=False)
        console.print(f"[green]Execution history written to {export}[/green]")


@app.command()
def status() -> None:
    """Print effective engine settings."""
    settings = get_settings()
    table = Table(title="Engine Settings")
    table.add_column("Setting", style="cyan")
    table.add_column("Value", style="green")
    for name, value in settings.model_dump().items():
        table.add_row(name, str(value))
    console.print(table)
