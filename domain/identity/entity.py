"""
身份与角色 - 基于能力集合（capability set）的授权模型

请求入口只解析一次身份（Identity），之后显式传递给应用服务，
不在各处重复查询角色字段。
"""
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Optional

from domain.common.exceptions import DomainValidationException, PermissionDeniedException


class Role(str, Enum):
    STUDENT = "student"
    INSTRUCTOR = "instructor"
    ADMIN = "admin"
    SUPER_ADMIN = "super_admin"


class Capability(str, Enum):
    PURCHASE_COURSE = "purchase_course"
    RECEIVE_PAYOUTS = "receive_payouts"
    MANAGE_PAYOUTS = "manage_payouts"
    VERIFY_BANK_ACCOUNTS = "verify_bank_accounts"
    VIEW_PLATFORM_REVENUE = "view_platform_revenue"
    MANAGE_ROLES = "manage_roles"


_ADMIN_CAPABILITIES = frozenset({
    Capability.PURCHASE_COURSE,
    Capability.MANAGE_PAYOUTS,
    Capability.VERIFY_BANK_ACCOUNTS,
    Capability.VIEW_PLATFORM_REVENUE,
})

ROLE_CAPABILITIES: dict[Role, frozenset[Capability]] = {
    Role.STUDENT: frozenset({Capability.PURCHASE_COURSE}),
    Role.INSTRUCTOR: frozenset({Capability.PURCHASE_COURSE, Capability.RECEIVE_PAYOUTS}),
    Role.ADMIN: _ADMIN_CAPABILITIES,
    Role.SUPER_ADMIN: _ADMIN_CAPABILITIES | {Capability.MANAGE_ROLES},
}


@dataclass(frozen=True)
class Identity:
    """已认证的调用方"""

    user_id: str
    role: Role = Role.STUDENT
    email: Optional[str] = None

    @property
    def capabilities(self) -> frozenset[Capability]:
        return ROLE_CAPABILITIES.get(self.role, frozenset())

    def can(self, capability: Capability) -> bool:
        return capability in self.capabilities

    def require(self, capability: Capability) -> None:
        if not self.can(capability):
            raise PermissionDeniedException(capability.value, role=self.role.value)


@dataclass
class Profile:
    """用户资料（外部认证服务维护，本服务只读写 role 字段）"""

    id: str
    email: Optional[str]
    full_name: Optional[str]
    role: Role = Role.STUDENT
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @property
    def first_name(self) -> str:
        parts = (self.full_name or "").split()
        return parts[0] if parts else "Anonymous"

    @property
    def last_name(self) -> str:
        parts = (self.full_name or "").split()
        return " ".join(parts[1:]) if len(parts) > 1 else "User"

    def change_role(self, new_role: Role) -> None:
        if new_role == self.role:
            raise DomainValidationException(
                f"User already has role {new_role.value}",
                field="role",
            )
        self.role = new_role
        self.updated_at = datetime.now(timezone.utc)
