"""Tests for OperatorAPI + RoleAuthorizer."""

from __future__ import annotations

from datetime import timedelta

import pytest

from yieldbot.api.auth import (
    AllowAllAuthorizer,
    Authorizer,
    Permission,
    RoleAuthorizer,
)
from yieldbot.automation.models import TaskConfig, TaskType
from yieldbot.config.settings import EngineSettings
from yieldbot.core.exceptions import (
    AuthorizationError,
    StrategyNotFoundError,
    StrategyValidationError,
)
from yieldbot.sim.engine import DEMO_ASSET, PaperEngine, build_paper_engine, seed_demo
from yieldbot.strategy.models import ScoringAlgorithm

# ── Helpers ─────────────────────────────────────────────────────


def _make_engine(settings: EngineSettings) -> tuple[PaperEngine, RoleAuthorizer]:
    authorizer = RoleAuthorizer(
        {
            "operator": {"admin"},
            "alice": {"rebalancer"},
            "keeper-bot": {"keeper"},
            "guardian": {"emergency"},
            "bob": {"viewer"},
        }
    )
    engine = build_paper_engine(settings, authorizer=authorizer)
    seed_demo(engine, ScoringAlgorithm.YIELD_OPTIMIZATION, 1_000_000.0)
    return engine, authorizer


# ── Authorization ───────────────────────────────────────────────


class TestRoleAuthorizer:
    def test_protocol(self) -> None:
        assert isinstance(RoleAuthorizer({}), Authorizer)
        assert isinstance(AllowAllAuthorizer(), Authorizer)

    def test_permissions_union(self) -> None:
        authorizer = RoleAuthorizer({"carol": {"keeper", "emergency"}})
        assert authorizer.permissions_of("carol") == frozenset(
            {Permission.EXECUTE_TASKS, Permission.CONTROL_AUTOMATION, Permission.CLEAR_EMERGENCY}
        )
        assert authorizer.permissions_of("nobody") == frozenset()

    def test_grant(self) -> None:
        authorizer = RoleAuthorizer({})
        authorizer.grant("dave", "rebalancer")
        authorizer.require("dave", Permission.MANAGE_STRATEGIES)
        with pytest.raises(AuthorizationError, match="Unknown role"):
            authorizer.grant("dave", "superuser")

    def test_allow_all(self) -> None:
        AllowAllAuthorizer().require("anyone", Permission.CLEAR_EMERGENCY)


class TestOperatorAuthorization:
    def test_viewer_cannot_mutate(self, settings: EngineSettings) -> None:
        engine, _ = _make_engine(settings)
        with pytest.raises(AuthorizationError):
            engine.api.deactivate_strategy("bob", "usdc-core")
        assert engine.api.strategy("usdc-core").is_active is True

    def test_denied_task_creation_has_no_effect(self, settings: EngineSettings) -> None:
        engine, _ = _make_engine(settings)
        before = len(engine.scheduler.tasks())
        with pytest.raises(AuthorizationError):
            engine.api.create_task(
                "keeper-bot", TaskConfig(task_type=TaskType.COMPOUND, interval=timedelta(hours=1))
            )
        assert len(engine.scheduler.tasks()) == before

    def test_rebalancer_edits_strategy(self, settings: EngineSettings) -> None:
        engine, _ = _make_engine(settings)
        strategy = engine.api.edit_strategy("alice", "usdc-core", deviation_threshold=0.1)
        assert strategy.definition.deviation_threshold == 0.1

    def test_edit_strategy_rejects_id_change(self, settings: EngineSettings) -> None:
        engine, _ = _make_engine(settings)
        with pytest.raises(StrategyValidationError, match="immutable"):
            engine.api.edit_strategy("alice", "usdc-core", strategy_id="renamed")
        assert engine.registry.get("usdc-core").strategy_id == "usdc-core"

    def test_keeper_force_executes(self, settings: EngineSettings) -> None:
        engine, _ = _make_engine(settings)
        execution = engine.api.force_execute("keeper-bot", 3)
        assert execution.forced is True
        assert execution.task_type == TaskType.RISK_ASSESSMENT
        with pytest.raises(AuthorizationError):
            engine.api.force_execute("alice", 3)

    def test_only_emergency_role_clears(self, settings: EngineSettings) -> None:
        engine, _ = _make_engine(settings)
        engine.market.set_risk(DEMO_ASSET, 95.0)
        engine.step()
        assert engine.api.automation_status().emergency_mode is True

        with pytest.raises(AuthorizationError):
            engine.api.clear_emergency("keeper-bot")
        assert engine.api.automation_status().emergency_mode is True

        engine.api.clear_emergency("guardian")
        assert engine.api.automation_status().emergency_mode is False

    def test_pause_resume(self, settings: EngineSettings) -> None:
        engine, _ = _make_engine(settings)
        engine.api.set_automation_enabled("keeper-bot", False)
        assert engine.api.automation_status().automation_enabled is False
        engine.api.set_automation_enabled("guardian", True)
        assert engine.api.automation_status().automation_enabled is True


# ── Reads ───────────────────────────────────────────────────────


class TestReads:
    def test_reads_need_no_permission(self, settings: EngineSettings) -> None:
        engine, _ = _make_engine(settings)
        engine.step()

        assert [s.strategy_id for s in engine.api.strategies()] == ["usdc-core"]
        assert engine.api.snapshot(DEMO_ASSET) is not None
        assert engine.api.metrics().ticks_total == 1
        assert len(engine.api.scheduled_next_executions()) == 4

    def test_history_unknown_strategy(self, settings: EngineSettings) -> None:
        engine, _ = _make_engine(settings)
        with pytest.raises(StrategyNotFoundError):
            engine.api.history("missing")

    def test_history_limit(self, settings: EngineSettings) -> None:
        engine, _ = _make_engine(settings)
        engine.market.set_risk(DEMO_ASSET, 95.0)
        engine.step()
        engine.api.force_execute("operator", 2)
        engine.api.force_execute("operator", 2)

        full = engine.api.history("usdc-core")
        assert len(full) >= 3
        assert engine.api.history("usdc-core", limit=2) == full[-2:]
