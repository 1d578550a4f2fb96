"""Paper-mode collaborators and engine assembly."""

from yieldbot.sim.engine import DEMO_ASSET, PaperEngine, build_paper_engine, seed_demo
from yieldbot.sim.market import SimAsset, SimulatedMarket, SimVenue

__all__ = [
    "DEMO_ASSET",
    "PaperEngine",
    "SimAsset",
    "SimVenue",
    "SimulatedMarket",
    "build_paper_engine",
    "seed_demo",
]
