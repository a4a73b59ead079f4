"""Yetki ve ağ erişilebilirliği için işbirlikçiler."""

from dataclasses import dataclass
from enum import Enum
from typing import FrozenSet, Optional, Protocol


class Permission(str, Enum):
    MANAGE_BOOKS = "manageBooks"
    MANAGE_STUDENTS = "manageStudents"
    MANAGE_BORROWING = "manageBorrowing"
    MANAGE_ADMINS = "manageAdmins"
    MANAGE_SETTINGS = "manageSettings"


class UserRole(str, Enum):
    ADMIN = "admin"
    SUPER_ADMIN = "superAdmin"

    @property
    def display_name(self) -> str:
        return "Süper Admin" if self is UserRole.SUPER_ADMIN else "Admin"

    @property
    def permissions(self) -> FrozenSet[Permission]:
        if self is UserRole.SUPER_ADMIN:
            return frozenset(Permission)
        return frozenset(
            {Permission.MANAGE_BOOKS, Permission.MANAGE_STUDENTS, Permission.MANAGE_BORROWING}
        )

    @classmethod
    def from_value(cls, value: str) -> "UserRole":
        for role in cls:
            if role.value == value:
                return role
        # Bilinmeyen roller en düşük yetkiye düşer
        return cls.ADMIN


class PermissionChecker(Protocol):
    def has_permission(self, permission: Permission) -> bool:
        ...


class NetworkMonitor(Protocol):
    def is_online(self) -> bool:
        ...


@dataclass
class Operator:
    """Uygulamayı kullanan yönetici."""

    role: UserRole = UserRole.ADMIN
    name: Optional[str] = None
    is_active: bool = True

    def has_permission(self, permission: Permission) -> bool:
        return self.is_active and permission in self.role.permissions


@dataclass
class StaticNetwork:
    online: bool = True

    def is_online(self) -> bool:
        return self.online
