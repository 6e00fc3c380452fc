"""Member account management for the admin users page."""

from __future__ import annotations

from typing import Any, Dict, List, Optional

from core import AuditAction, UserRole, get_logger
from core.exceptions import InvalidRoleError, UserNotFoundError
from database.row_store import RowStore, soft_fetch
from services.audit_service import AuditService
from utils.timestamps import to_storage, utc_now

logger = get_logger(__name__)

ROLES = tuple(role.value for role in UserRole)


class UserService:
    """Lists members with their roles, changes roles and deletes members.

    Every change is written to the audit log with the admin who made it.
    """

    def __init__(self, store: Optional[RowStore] = None, audit: Optional[AuditService] = None) -> None:
        self.store = store or RowStore()
        self.audit = audit or AuditService(self.store)

    async def list_users(self, limit: Optional[int] = None) -> List[Dict[str, Any]]:
        return await soft_fetch(self.store.query_users(limit=limit), "users", [])

    async def update_role(
        self,
        user_id: str,
        role: str,
        performed_by: Optional[str] = None,
        ip_address: Optional[str] = None,
        user_agent: Optional[str] = None,
    ) -> None:
        """Give ``user_id`` the role ``role``.

        Raises:
            InvalidRoleError: ``role`` is not one of ``ROLES``
            UserNotFoundError: No member with this id
            WriteError: The role could not be stored
        """
        if role not in ROLES:
            raise InvalidRoleError(f"Unknown role {role!r}")
        if not await self.store.upsert_role(user_id, role, to_storage(utc_now())):
            raise UserNotFoundError(f"User {user_id} does not exist")

        logger.info(f"Role of {user_id} set to {role} by {performed_by}")
        await self.audit.log_action(
            AuditAction.ROLE_UPDATED.value,
            user_id=user_id,
            metadata={"new_role": role, "performed_by": performed_by},
            ip_address=ip_address,
            user_agent=user_agent,
        )

    async def delete_user(
        self,
        user_id: str,
        performed_by: Optional[str] = None,
        ip_address: Optional[str] = None,
        user_agent: Optional[str] = None,
    ) -> None:
        """Delete a member.

        Raises:
            UserNotFoundError: No member with this id
            WriteError: The member could not be deleted
        """
        if not await self.store.delete_user(user_id):
            raise UserNotFoundError(f"User {user_id} does not exist")

        logger.info(f"User {user_id} deleted by {performed_by}")
        await self.audit.log_action(
            AuditAction.USER_DELETED.value,
            user_id=user_id,
            metadata={"performed_by": performed_by},
            ip_address=ip_address,
            user_agent=user_agent,
        )
