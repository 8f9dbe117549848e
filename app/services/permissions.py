from app.core.constants import DEFAULT_USER_ROLE, PROFILES, ROLE_ADMIN, ROLE_GUEST, ROLE_USER
from app.providers.database import DatabaseProvider
from typing import Dict, List, Optional

import copy
import logging

logger = logging.getLogger(__name__)

USER_READ = "user:read"
USER_WRITE = "user:write"
USER_DELETE = "user:delete"
ADMIN_ACCESS = "admin:access"
SUBSCRIPTION_MANAGE = "subscription:manage"

DEFAULT_PERMISSIONS: Dict[str, List[str]] = {
    ROLE_ADMIN: [USER_READ, USER_WRITE, USER_DELETE, ADMIN_ACCESS, SUBSCRIPTION_MANAGE],
    ROLE_USER: [USER_READ, SUBSCRIPTION_MANAGE],
    ROLE_GUEST: [USER_READ],
}


class PermissionsService:
    """Role-based access control over a role -> permissions table."""

    def __init__(
        self,
        custom_permissions: Optional[Dict[str, List[str]]] = None,
        database: Optional[DatabaseProvider] = None,
    ):
        self.permissions = copy.deepcopy(custom_permissions or DEFAULT_PERMISSIONS)
        self.db = database

    def has_permission(self, role: Optional[str], permission: str) -> bool:
        return permission in self.permissions.get(role or "", [])

    def get_role_permissions(self, role: str) -> List[str]:
        return list(self.permissions.get(role, []))

    def add_permission(self, role: str, permission: str) -> None:
        granted = self.permissions.setdefault(role, [])
        if permission not in granted:
            granted.append(permission)

    def remove_permission(self, role: str, permission: str) -> None:
        if role in self.permissions:
            self.permissions[role] = [p for p in self.permissions[role] if p != permission]

    async def check_access(self, user_id: str, permission: str) -> bool:
        """Check a permission for a user, reading their role from the profile."""
        if self.db is None:
            raise RuntimeError("check_access needs a database provider")
        profile = await self.db.get_by_id(PROFILES, user_id)
        role = (profile or {}).get("role") or DEFAULT_USER_ROLE
        return self.has_permission(role, permission)
