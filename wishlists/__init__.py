"""Wishlists module for managing per-user named collections of items.

Wishlists are readable and writable by their owner only, whether or not
they are flagged public.
"""

import logging
import uuid
from typing import Dict, List, Optional, Union, Any

import asyncpg

from auth.policy import Action, authorize
from database import get_pool
from errors import MarketplaceError, ConflictError, InternalError, NotFoundError, ValidationError
from items import ItemNotFoundError, serialize_item, ITEM_SELECT

logger = logging.getLogger(__name__)

# Fields the owner may change
MUTABLE_FIELDS = {'name', 'is_public'}

class WishlistError(InternalError):
    """Wishlist operation failed."""
    pass

class WishlistNotFoundError(WishlistError, NotFoundError):
    """Wishlist not found."""
    pass

class InvalidWishlistError(WishlistError, ValidationError):
    """Invalid wishlist data."""
    pass

class DuplicateWishlistItemError(WishlistError, ConflictError):
    """Item is already in wishlist."""
    pass

class WishlistItemNotFoundError(WishlistError, NotFoundError):
    """Item not found in wishlist."""
    pass

class WishlistManager:
    """Manager class for handling wishlist operations."""

    def __init__(self, pool=None):
        """Initialize the wishlist manager.

        Args:
            pool: Optional database pool. If not provided, will get from database module.
        """
        self.pool = pool

    async def ensure_pool(self):
        """Ensure we have a database pool."""
        if not self.pool:
            self.pool = await get_pool()

    async def _fetch_wishlist(self, conn, wishlist_id) -> Optional[Dict[str, Any]]:
        """Load a wishlist with its entries resolved to item details."""
        wishlist = await conn.fetchrow('SELECT * FROM wishlists WHERE id = $1', wishlist_id)
        if not wishlist:
            return None

        entries = await conn.fetch(
            '''
            SELECT
                wi.id AS entry_id,
                wi.created_at AS added_at,
                i.*,
                u.name AS owner_name,
                u.email AS owner_email
            FROM wishlist_items wi
            JOIN items i ON i.id = wi.item_id
            JOIN users u ON u.id = i.user_id
            WHERE wi.wishlist_id = $1
            ORDER BY wi.created_at DESC
            ''',
            wishlist_id
        )

        return {
            'id': str(wishlist['id']),
            'user_id': str(wishlist['user_id']),
            'name': wishlist['name'],
            'is_public': wishlist['is_public'],
            'items': [{
                'id': str(e['entry_id']),
                'item_id': str(e['id']),
                'added_at': e['added_at'].isoformat() if e['added_at'] else None,
                'item': serialize_item(e)
            } for e in entries],
            'created_at': wishlist['created_at'].isoformat() if wishlist['created_at'] else None,
            'updated_at': wishlist['updated_at'].isoformat() if wishlist['updated_at'] else None
        }

    async def _get_owned(self, conn, wishlist_id, requester, action: Action) -> None:
        """Check the wishlist exists and the requester may perform ``action`` on it."""
        owner_id = await conn.fetchval('SELECT user_id FROM wishlists WHERE id = $1', wishlist_id)
        if owner_id is None:
            raise WishlistNotFoundError(f"Wishlist {wishlist_id} not found")
        authorize(requester, action, owner_id)

    async def create_wishlist(
        self,
        owner_id: Union[str, uuid.UUID],
        name: str,
        is_public: bool = False
    ) -> Dict[str, Any]:
        """Create an empty wishlist.

        Raises:
            InvalidWishlistError: If the name is empty
        """
        if not name or not name.strip():
            raise InvalidWishlistError("Wishlist name is required")

        await self.ensure_pool()

        try:
            async with self.pool.acquire() as conn:
                wishlist_id = await conn.fetchval(
                    '''
                    INSERT INTO wishlists (user_id, name, is_public)
                    VALUES ($1, $2, $3)
                    RETURNING id
                    ''',
                    owner_id,
                    name.strip(),
                    bool(is_public)
                )
                wishlist = await self._fetch_wishlist(conn, wishlist_id)

            logger.info(f"Created wishlist {wishlist_id} for user {owner_id}")
            return wishlist

        except MarketplaceError:
            raise
        except Exception as e:
            logger.error(f"Error creating wishlist: {e}")
            raise WishlistError("Failed to create wishlist")

    async def list_wishlists(self, owner_id: Union[str, uuid.UUID]) -> List[Dict[str, Any]]:
        """Get a user's wishlists, newest first, with item details."""
        await self.ensure_pool()

        async with self.pool.acquire() as conn:
            rows = await conn.fetch(
                'SELECT id FROM wishlists WHERE user_id = $1 ORDER BY created_at DESC',
                owner_id
            )
            results = []
            for row in rows:
                wishlist = await self._fetch_wishlist(conn, row['id'])
                if wishlist:
                    results.append(wishlist)
        return results

    async def get_wishlist(self, wishlist_id: Union[str, uuid.UUID], requester) -> Dict[str, Any]:
        """Get a wishlist by ID.

        Raises:
            WishlistNotFoundError: If the wishlist doesn't exist
            AuthorizationError: If the requester isn't the owner
        """
        await self.ensure_pool()

        async with self.pool.acquire() as conn:
            wishlist = await self._fetch_wishlist(conn, wishlist_id)

        if not wishlist:
            raise WishlistNotFoundError(f"Wishlist {wishlist_id} not found")
        authorize(requester, Action.WISHLIST_READ, wishlist['user_id'])
        return wishlist

    async def update_wishlist(
        self,
        wishlist_id: Union[str, uuid.UUID],
        updates: Dict[str, Any],
        requester
    ) -> Dict[str, Any]:
        """Rename a wishlist or change its visibility.

        Args:
            wishlist_id: The wishlist UUID
            updates: Dict containing name and/or is_public; omitted fields keep their value
            requester: The authenticated user

        Raises:
            WishlistNotFoundError: If the wishlist doesn't exist
            AuthorizationError: If the requester isn't the owner
            InvalidWishlistError: If update contains invalid fields or an empty name
        """
        updates = {k: v for k, v in updates.items() if v is not None}

        invalid_fields = set(updates.keys()) - MUTABLE_FIELDS
        if invalid_fields:
            raise InvalidWishlistError(f"Cannot update fields: {', '.join(sorted(invalid_fields))}")
        if 'name' in updates:
            if not updates['name'].strip():
                raise InvalidWishlistError("Wishlist name is required")
            updates['name'] = updates['name'].strip()

        await self.ensure_pool()

        try:
            async with self.pool.acquire() as conn:
                await self._get_owned(conn, wishlist_id, requester, Action.WISHLIST_UPDATE)

                if updates:
                    fields = []
                    values = []
                    for i, (field, value) in enumerate(updates.items(), start=1):
                        fields.append(f"{field} = ${i}")
                        values.append(value)
                    values.append(wishlist_id)

                    await conn.execute(
                        f'''
                        UPDATE wishlists
                        SET {', '.join(fields)}, updated_at = now()
                        WHERE id = ${len(values)}
                        ''',
                        *values
                    )
                    logger.info(f"Updated wishlist {wishlist_id}")

                return await self._fetch_wishlist(conn, wishlist_id)

        except MarketplaceError:
            raise
        except Exception as e:
            logger.error(f"Error updating wishlist: {e}")
            raise WishlistError("Failed to update wishlist")

    async def delete_wishlist(self, wishlist_id: Union[str, uuid.UUID], requester) -> None:
        """Delete a wishlist and its entries.

        Raises:
            WishlistNotFoundError: If the wishlist doesn't exist
            AuthorizationError: If the requester isn't the owner
        """
        await self.ensure_pool()

        async with self.pool.acquire() as conn:
            await self._get_owned(conn, wishlist_id, requester, Action.WISHLIST_DELETE)
            # Entries go with it through ON DELETE CASCADE
            await conn.execute('DELETE FROM wishlists WHERE id = $1', wishlist_id)

        logger.info(f"Deleted wishlist {wishlist_id}")

    async def add_item(
        self,
        wishlist_id: Union[str, uuid.UUID],
        item_id: Union[str, uuid.UUID],
        requester
    ) -> Dict[str, Any]:
        """Add an item to a wishlist.

        Returns:
            Dict describing the new wishlist entry with the item details

        Raises:
            WishlistNotFoundError: If the wishlist doesn't exist
            AuthorizationError: If the requester isn't the owner
            ItemNotFoundError: If the item doesn't exist
            DuplicateWishlistItemError: If the item is already in the wishlist
        """
        await self.ensure_pool()

        try:
            async with self.pool.acquire() as conn:
                await self._get_owned(conn, wishlist_id, requester, Action.WISHLIST_UPDATE)

                item = await conn.fetchrow(f'{ITEM_SELECT} WHERE i.id = $1', item_id)
                if not item:
                    raise ItemNotFoundError(f"Item {item_id} not found")

                exists = await conn.fetchval(
                    'SELECT EXISTS(SELECT 1 FROM wishlist_items WHERE wishlist_id = $1 AND item_id = $2)',
                    wishlist_id,
                    item_id
                )
                if exists:
                    raise DuplicateWishlistItemError("Item is already in wishlist")

                try:
                    entry = await conn.fetchrow(
                        '''
                        INSERT INTO wishlist_items (wishlist_id, item_id)
                        VALUES ($1, $2)
                        RETURNING id, created_at
                        ''',
                        wishlist_id,
                        item_id
                    )
                except asyncpg.exceptions.UniqueViolationError:
                    # Lost a race against a concurrent add of the same item
                    raise DuplicateWishlistItemError("Item is already in wishlist")

            logger.info(f"Added item {item_id} to wishlist {wishlist_id}")
            return {
                'id': str(entry['id']),
                'wishlist_id': str(wishlist_id),
                'item_id': str(item_id),
                'added_at': entry['created_at'].isoformat() if entry['created_at'] else None,
                'item': serialize_item(item)
            }

        except MarketplaceError:
            raise
        except Exception as e:
            logger.error(f"Error adding item to wishlist: {e}")
            raise WishlistError("Failed to add item to wishlist")

    async def remove_item(
        self,
        wishlist_id: Union[str, uuid.UUID],
        item_id: Union[str, uuid.UUID],
        requester
    ) -> None:
        """Remove an item from a wishlist.

        Raises:
            WishlistNotFoundError: If the wishlist doesn't exist
            AuthorizationError: If the requester isn't the owner
            WishlistItemNotFoundError: If the item isn't in the wishlist
        """
        await self.ensure_pool()

        async with self.pool.acquire() as conn:
            await self._get_owned(conn, wishlist_id, requester, Action.WISHLIST_UPDATE)

            deleted = await conn.fetchval(
                '''
                DELETE FROM wishlist_items
                WHERE wishlist_id = $1 AND item_id = $2
                RETURNING id
                ''',
                wishlist_id,
                item_id
            )
            if deleted is None:
                raise WishlistItemNotFoundError("Item not found in wishlist")

        logger.info(f"Removed item {item_id} from wishlist {wishlist_id}")

__all__ = [
    'WishlistManager',
    'WishlistError',
    'WishlistNotFoundError',
    'InvalidWishlistError',
    'DuplicateWishlistItemError',
    'WishlistItemNotFoundError'
]
