"""Strategy engine: registry, optimizer, gate, executor, ledger."""

from yieldbot.strategy.cost_model import TransferCostModel
from yieldbot.strategy.executor import RebalanceExecutor, plan_transfers
from yieldbot.strategy.gate import GateDecision, RebalanceGate, deviation
from yieldbot.strategy.ledger import ExecutionLedger
from yieldbot.strategy.models import (
    ExecutionRecord,
    ScoringAlgorithm,
    Strategy,
    StrategyDefinition,
    TransferInstruction,
    TransferLeg,
)
from yieldbot.strategy.optimizer import AllocationOptimizer
from yieldbot.strategy.registry import StrategyRegistry

__all__ = [
    "AllocationOptimizer",
    "ExecutionLedger",
    "ExecutionRecord",
    "GateDecision",
    "RebalanceExecutor",
    "RebalanceGate",
    "ScoringAlgorithm",
    "Strategy",
    "StrategyDefinition",
    "StrategyRegistry",
    "TransferCostModel",
    "TransferInstruction",
    "TransferLeg",
    "deviation",
    "plan_transfers",
]
