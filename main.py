"""yieldbot - Entry Point.

Usage:
    python main.py engine simulate --ticks 48
    python main.py engine simulate --algorithm risk_minimization --shock-at 20
    python main.py engine status
"""

import typer

from yieldbot.cli.engine import app as engine_app

# Main Typer Application
app = typer.Typer(
    name="yieldbot",
    help="yieldbot - Automated capital rebalancing engine",
    no_args_is_help=True,
)

# Register sub-applications
app.add_typer(engine_app, name="engine", help="Paper-mode simulation and settings")


if __name__ == "__main__":
    app()
