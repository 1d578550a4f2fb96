"""Context binding utilities for structured logging.

strategy_id, asset, task_id를 loguru record의 extra에 바인딩하여
tick 단위 로그를 전략/태스크별로 추적할 수 있게 합니다.

Rules Applied:
    - #15 Logging Standards: Context binding with logger.bind()
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from loguru import logger

if TYPE_CHECKING:
    from loguru import Logger


def get_strategy_logger(strategy_id: str, asset: str | None = None, **extra: object) -> Logger:
    """전략 컨텍스트가 바인딩된 logger.

    Args:
        strategy_id: 전략 식별자
        asset: 관리 대상 asset
        **extra: 추가 컨텍스트

    Returns:
        Logger with strategy context bound

    Example:
        >>> log = get_strategy_logger("usdc-core", asset="USDC")
        >>> log.info("Rebalance executed")
    """
    ctx: dict[str, object] = {"strategy_id": strategy_id}
    if asset:
        ctx["asset"] = asset
    ctx.update(extra)
    return logger.bind(**ctx)


def get_task_logger(task_id: int, task_type: str, **extra: object) -> Logger:
    """자동화 태스크 컨텍스트가 바인딩된 logger.

    Args:
        task_id: 태스크 ID
        task_type: 태스크 유형 값 (예: "rebalance")
        **extra: 추가 컨텍스트

    Returns:
        Logger with task context bound
    """
    return logger.bind(task_id=task_id, task_type=task_type, **extra)
