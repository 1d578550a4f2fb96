"""Custom exception hierarchy for the allocation engine.

리밸런싱 엔진의 도메인 예외 계층을 정의합니다.
예외는 처리 방식에 따라 분류됩니다.

Exception Categories:
    - Validation (Reject): 잘못된 전략/태스크 정의, 상태 변경 없이 즉시 거부
    - Execution (Record): 외부 transfer 실패, 실패 레코드로 기록 후 계속
    - Task Handler (Isolate): 태스크 내부 예외, 태스크 단위로 격리
    - Authorization (Reject): 권한 없는 변경 요청

Cooldown/threshold 미충족(GateRejection)은 예외가 아니라 GateDecision 값입니다.

Rules Applied:
    - #23 Exception Handling: Domain-driven hierarchy, add_note()
"""


class YieldBotError(Exception):
    """모든 엔진 예외의 기본 클래스.

    이 예외를 직접 발생시키지 말고, 하위 클래스를 사용하세요.

    Attributes:
        message: 에러 메시지
        context: 추가 컨텍스트 정보 (디버깅용)
    """

    def __init__(self, message: str, *, context: dict[str, object] | None = None) -> None:
        """YieldBotError 초기화.

        Args:
            message: 에러 메시지
            context: 추가 컨텍스트 정보 (선택)
        """
        super().__init__(message)
        self.message = message
        self.context: dict[str, object] = context or {}

    def __str__(self) -> str:
        """에러 메시지와 컨텍스트를 포함한 문자열 반환."""
        if self.context:
            ctx_str = ", ".join(f"{k}={v}" for k, v in self.context.items())
            return f"{self.message} [{ctx_str}]"
        return self.message


# =============================================================================
# Validation Errors (Reject synchronously, no state change)
# =============================================================================


class ValidationError(YieldBotError):
    """정의 검증 오류 (잘못된 전략/태스크 정의).

    Example:
        >>> raise ValidationError(
        ...     "Target allocation must sum to 1.0",
        ...     context={"strategy_id": "usdc-core", "sum": 0.98}
        ... )
    """


class StrategyValidationError(ValidationError):
    """전략 정의 검증 오류."""


class TaskValidationError(ValidationError):
    """자동화 태스크 정의 검증 오류."""


# =============================================================================
# Lookup Errors
# =============================================================================


class NotFoundError(YieldBotError):
    """존재하지 않는 레코드 조회."""


class StrategyNotFoundError(NotFoundError):
    """등록되지 않은 strategy_id."""


class TaskNotFoundError(NotFoundError):
    """등록되지 않은 task_id."""


# =============================================================================
# Execution Errors (Record failure, advance cooldown, no retry within tick)
# =============================================================================


class ExecutionError(YieldBotError):
    """리밸런스 실행 중 발생한 오류의 기본 클래스.

    이미 완료된 transfer는 되돌리지 않습니다 (fail-fast, no rollback).
    """


class TransferError(ExecutionError):
    """외부 venue transfer primitive 실패.

    Example:
        >>> raise TransferError(
        ...     "Venue rejected withdrawal",
        ...     context={"from": "aave", "to": "compound", "amount": 1_000.0}
        ... )
    """


class SlippageExceededError(ExecutionError):
    """실현 슬리피지가 전략의 max_slippage를 초과.

    Attributes:
        slippage: 실현 슬리피지
        limit: 허용 한도
    """

    def __init__(
        self,
        message: str,
        *,
        slippage: float,
        limit: float,
        context: dict[str, object] | None = None,
    ) -> None:
        super().__init__(message, context=context)
        self.slippage = slippage
        self.limit = limit


# =============================================================================
# Task Handler Errors (Isolated per task, never propagated past the tick)
# =============================================================================


class TaskHandlerError(YieldBotError):
    """태스크 핸들러 내부의 예기치 않은 오류."""


# =============================================================================
# Authorization Errors
# =============================================================================


class AuthorizationError(YieldBotError):
    """권한 없는 operator 변경 요청."""


# =============================================================================
# Utility Functions
# =============================================================================


def add_context_note(exc: Exception, note: str) -> None:
    """예외에 컨텍스트 노트 추가 (Python 3.11+ add_note).

    원본 Traceback을 보존하면서 디버깅 정보를 추가합니다.

    Args:
        exc: 예외 객체
        note: 추가할 노트 문자열

    Example:
        >>> try:
        ...     handler(task, ctx)
        ... except Exception as e:
        ...     add_context_note(e, f"Failed while running task {task.task_id}")
        ...     raise
    """
    exc.add_note(note)
