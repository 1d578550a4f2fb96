"""Operator authorization.

변경 요청은 API 경계에서 주입된 Authorizer로 권한을 검사합니다.
핵심 알고리즘과는 독립적인 capability check입니다.

Roles (default):
    admin      → 모든 권한
    rebalancer → 전략/태스크 관리
    keeper     → 태스크 강제 실행, 자동화 on/off
    emergency  → 긴급 모드 해제, 자동화 on/off
    viewer     → 읽기 전용
"""

from __future__ import annotations

from enum import StrEnum
from typing import TYPE_CHECKING, Protocol, runtime_checkable

from loguru import logger

from yieldbot.core.exceptions import AuthorizationError

if TYPE_CHECKING:
    from collections.abc import Mapping


class Permission(StrEnum):
    """변경 권한."""

    MANAGE_STRATEGIES = "manage_strategies"
    MANAGE_TASKS = "manage_tasks"
    EXECUTE_TASKS = "execute_tasks"
    CONTROL_AUTOMATION = "control_automation"
    CLEAR_EMERGENCY = "clear_emergency"


DEFAULT_ROLE_PERMISSIONS: dict[str, frozenset[Permission]] = {
    "admin": frozenset(Permission),
    "rebalancer": frozenset({Permission.MANAGE_STRATEGIES, Permission.MANAGE_TASKS}),
    "keeper": frozenset({Permission.EXECUTE_TASKS, Permission.CONTROL_AUTOMATION}),
    "emergency": frozenset({Permission.CLEAR_EMERGENCY, Permission.CONTROL_AUTOMATION}),
    "viewer": frozenset(),
}


@runtime_checkable
class Authorizer(Protocol):
    """권한 검사 port."""

    def require(self, principal: str, permission: Permission) -> None:
        """권한이 없으면 AuthorizationError."""
        ...


class AllowAllAuthorizer:
    """모든 요청 허용 (paper mode / 로컬 시뮬레이션)."""

    def require(self, principal: str, permission: Permission) -> None:
        return None


class RoleAuthorizer:
    """principal → role → permission 매핑 기반 Authorizer.

    Args:
        assignments: principal → role 이름 집합
        role_permissions: role → 권한 집합 (None이면 DEFAULT_ROLE_PERMISSIONS)
    """

    def __init__(
        self,
        assignments: Mapping[str, set[str] | frozenset[str]],
        role_permissions: Mapping[str, frozenset[Permission]] | None = None,
    ) -> None:
        self._assignments = {p: frozenset(roles) for p, roles in assignments.items()}
        self._roles = dict(role_permissions or DEFAULT_ROLE_PERMISSIONS)

    def permissions_of(self, principal: str) -> frozenset[Permission]:
        """principal의 유효 권한."""
        granted: set[Permission] = set()
        for role in self._assignments.get(principal, frozenset()):
            granted |= self._roles.get(role, frozenset())
        return frozenset(granted)

    def grant(self, principal: str, role: str) -> None:
        """principal에 role 부여."""
        if role not in self._roles:
            msg = f"Unknown role '{role}'"
            raise AuthorizationError(msg, context={"principal": principal})
        self._assignments[principal] = self._assignments.get(principal, frozenset()) | {role}

    def require(self, principal: str, permission: Permission) -> None:
        """권한 검사.

        Raises:
            AuthorizationError: principal에 permission이 없음
        """
        if permission not in self.permissions_of(principal):
            logger.warning("Authorization denied: {} lacks {}", principal, permission)
            msg = f"Principal '{principal}' lacks permission '{permission}'"
            raise AuthorizationError(
                msg, context={"principal": principal, "permission": permission.value}
            )
