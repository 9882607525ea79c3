"""User administration: listing accounts and changing roles."""

import logging
import uuid
from typing import Dict, List, Any, Union

from auth import serialize_user, USER_COLUMNS, UserNotFoundError
from auth.policy import Action, authorize, ROLES
from database import get_pool
from errors import InternalError, MarketplaceError, ValidationError

logger = logging.getLogger(__name__)

class UserError(InternalError):
    """User operation failed."""
    pass

class InvalidRoleError(UserError, ValidationError):
    """Invalid role."""
    pass

class UserManager:
    """Admin operations over user accounts."""

    def __init__(self, pool=None):
        self.pool = pool

    async def ensure_pool(self):
        """Ensure we have a database pool."""
        if not self.pool:
            self.pool = await get_pool()

    async def list_users(self, requester) -> List[Dict[str, Any]]:
        """List all users, newest first. Admin only."""
        authorize(requester, Action.USER_LIST)
        await self.ensure_pool()

        async with self.pool.acquire() as conn:
            rows = await conn.fetch(
                f'SELECT {USER_COLUMNS} FROM users ORDER BY created_at DESC'
            )
        return [serialize_user(row) for row in rows]

    async def update_user_role(
        self,
        user_id: Union[str, uuid.UUID],
        role: str,
        requester
    ) -> Dict[str, Any]:
        """Change a user's role. Admin only.

        Args:
            user_id: The user to change
            role: USER or ADMIN
            requester: The authenticated admin

        Raises:
            AuthorizationError: If the requester isn't an admin
            InvalidRoleError: If the role is unknown
            UserNotFoundError: If the user doesn't exist
        """
        authorize(requester, Action.USER_UPDATE_ROLE)
        if role not in ROLES:
            raise InvalidRoleError(f"Invalid role: {role}")

        await self.ensure_pool()

        try:
            async with self.pool.acquire() as conn:
                row = await conn.fetchrow(
                    f'''
                    UPDATE users
                    SET role = $1, updated_at = now()
                    WHERE id = $2
                    RETURNING {USER_COLUMNS}
                    ''',
                    role,
                    user_id
                )
        except Exception as e:
            logger.error(f"Error updating role for user {user_id}: {e}")
            raise UserError("Failed to update user role")

        if not row:
            raise UserNotFoundError("User not found")

        logger.info(f"User {user_id} role set to {role} by {requester.id}")
        return serialize_user(row)

__all__ = ['UserManager', 'UserError', 'InvalidRoleError']
