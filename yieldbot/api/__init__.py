"""Operator surface with injected authorization."""

from yieldbot.api.auth import (
    DEFAULT_ROLE_PERMISSIONS,
    AllowAllAuthorizer,
    Authorizer,
    Permission,
    RoleAuthorizer,
)
from yieldbot.api.operator import OperatorAPI

__all__ = [
    "DEFAULT_ROLE_PERMISSIONS",
    "AllowAllAuthorizer",
    "Authorizer",
    "OperatorAPI",
    "Permission",
    "RoleAuthorizer",
]
