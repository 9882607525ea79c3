"""Authorization policy.

All ownership and role checks go through ``authorize`` so each request is
evaluated once against a single rule table instead of inline role comparisons
scattered across handlers.
"""

from enum import Enum
from typing import Optional, Union
from uuid import UUID

from errors import AuthorizationError

ROLE_USER = 'USER'
ROLE_ADMIN = 'ADMIN'
ROLES = (ROLE_USER, ROLE_ADMIN)


class Action(str, Enum):
    ITEM_UPDATE = 'item:update'
    ITEM_DELETE = 'item:delete'
    ORDER_READ = 'order:read'
    ORDER_UPDATE = 'order:update'
    ORDER_LIST_ALL = 'order:list_all'
    WISHLIST_READ = 'wishlist:read'
    WISHLIST_UPDATE = 'wishlist:update'
    WISHLIST_DELETE = 'wishlist:delete'
    USER_LIST = 'user:list'
    USER_UPDATE_ROLE = 'user:update_role'


# Who may perform each action: the resource owner, an admin, or both
OWNER = 'owner'
ADMIN = 'admin'

RULES = {
    Action.ITEM_UPDATE: {OWNER, ADMIN},
    Action.ITEM_DELETE: {OWNER, ADMIN},
    Action.ORDER_READ: {OWNER},
    Action.ORDER_UPDATE: {OWNER},
    Action.ORDER_LIST_ALL: {ADMIN},
    Action.WISHLIST_READ: {OWNER},
    Action.WISHLIST_UPDATE: {OWNER},
    Action.WISHLIST_DELETE: {OWNER},
    Action.USER_LIST: {ADMIN},
    Action.USER_UPDATE_ROLE: {ADMIN},
}

MESSAGES = {
    Action.ITEM_UPDATE: "Not authorized to update this item",
    Action.ITEM_DELETE: "Not authorized to delete this item",
    Action.ORDER_READ: "Not authorized to view this order",
    Action.ORDER_UPDATE: "Not authorized to update this order",
    Action.ORDER_LIST_ALL: "Admin access required",
    Action.WISHLIST_READ: "Not authorized to view this wishlist",
    Action.WISHLIST_UPDATE: "Not authorized to modify this wishlist",
    Action.WISHLIST_DELETE: "Not authorized to delete this wishlist",
    Action.USER_LIST: "Admin access required",
    Action.USER_UPDATE_ROLE: "Admin access required",
}


def is_allowed(subject, action: Action, owner_id: Optional[Union[UUID, str]] = None) -> bool:
    """Check whether ``subject`` may perform ``action`` on a resource.

    Args:
        subject: The authenticated user (anything with ``id`` and ``role``)
        action: The action being attempted
        owner_id: Owner of the resource, if the action targets one

    Returns:
        True if any rule for the action grants access
    """
    allowed = RULES[action]
    if ADMIN in allowed and subject.role == ROLE_ADMIN:
        return True
    if OWNER in allowed and owner_id is not None:
        return str(subject.id) == str(owner_id)
    return False


def authorize(subject, action: Action, owner_id: Optional[Union[UUID, str]] = None) -> None:
    """Raise AuthorizationError unless ``subject`` may perform ``action``."""
    if not is_allowed(subject, action, owner_id):
        raise AuthorizationError(MESSAGES[action])


__all__ = ['Action', 'authorize', 'is_allowed', 'ROLES', 'ROLE_USER', 'ROLE_ADMIN']
