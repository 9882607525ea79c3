"""Items module for managing marketplace item listings.

This module provides functionality for:
- Creating, updating and deleting items
- Fetching single items and a seller's items
- Searching and filtering the catalog
"""

import logging
import uuid
from decimal import Decimal
from typing import Dict, List, Optional, Union, Any

import asyncpg

from auth.policy import Action, authorize
from database import get_pool
from errors import MarketplaceError
from .exceptions import (
    ItemError, ItemNotFoundError, InvalidItemError, ItemInUseError,
    InvalidItemStatusError, ItemReservedError
)
from .get_item import get_item, serialize_item, ITEM_SELECT, ITEM_STATUSES
from .search import search_items, build_search_query, escape_like, SORT_ORDERS, DEFAULT_LIMIT, MAX_LIMIT

logger = logging.getLogger(__name__)

# Fields an owner or admin may change
MUTABLE_FIELDS = {
    'title',
    'description',
    'price',
    'size',
    'condition',
    'category',
    'photo_url',
    'status'
}

# Fields required on creation
REQUIRED_FIELDS = (
    'title',
    'description',
    'size',
    'condition',
    'category',
    'photo_url'
)

# Largest price a NUMERIC(10, 2) column holds
MAX_PRICE = Decimal('99999999.99')

# Status changes an owner or admin may make by hand. Orders drive the
# reserve, sell and release steps for items they hold.
ITEM_TRANSITIONS = {
    'available': {'reserved'},
    'reserved': {'available', 'sold'},
    'sold': set()
}

# Orders in these states still hold their items
OPEN_ORDER_EXISTS = '''
    SELECT EXISTS(
        SELECT 1
        FROM order_items oi
        JOIN orders o ON o.id = oi.order_id
        WHERE oi.item_id = $1 AND o.status IN ('pending', 'processing')
    )
'''

def can_change_status(current: str, requested: str) -> bool:
    """Check whether an item may be moved from ``current`` to ``requested`` by hand."""
    return requested == current or requested in ITEM_TRANSITIONS.get(current, set())

def _validate_price(price) -> Decimal:
    try:
        price = Decimal(str(price))
    except (ArithmeticError, ValueError):
        raise InvalidItemError("Price must be a number")
    if not price.is_finite() or price <= 0:
        raise InvalidItemError("Price must be a positive number")
    if price > MAX_PRICE:
        raise InvalidItemError(f"Price cannot exceed {MAX_PRICE}")
    if price.as_tuple().exponent < -2:
        raise InvalidItemError("Price can have at most 2 decimal places")
    return price

class ItemManager:
    """Manager class for handling item operations."""

    def __init__(self, pool=None):
        """Initialize the item manager.

        Args:
            pool: Optional database pool. If not provided, will get from database module.
        """
        self.pool = pool

    async def ensure_pool(self):
        """Ensure we have a database pool."""
        if not self.pool:
            self.pool = await get_pool()

    async def create_item(
        self,
        owner_id: Union[str, uuid.UUID],
        title: str,
        description: str,
        price: Decimal,
        size: str,
        condition: str,
        category: str,
        photo_url: str
    ) -> Dict[str, Any]:
        """Create a new item listed as available.

        Args:
            owner_id: The seller's user ID
            title: Item title
            description: Item description
            price: Positive price
            size: Free-text size, e.g. M or One Size
            condition: Free-text condition
            category: Free-text category
            photo_url: URL of the item photo

        Returns:
            Dict containing the created item details

        Raises:
            InvalidItemError: If a field is missing or the price isn't positive
            ItemError: If creation fails
        """
        values = {
            'title': title,
            'description': description,
            'size': size,
            'condition': condition,
            'category': category,
            'photo_url': photo_url
        }
        missing = [f for f in REQUIRED_FIELDS if not values[f] or not str(values[f]).strip()]
        if missing:
            raise InvalidItemError(f"Missing required fields: {', '.join(missing)}")
        price = _validate_price(price)

        await self.ensure_pool()

        try:
            async with self.pool.acquire() as conn:
                item_id = await conn.fetchval(
                    '''
                    INSERT INTO items (
                        user_id, title, description, price,
                        size, condition, category, photo_url
                    ) VALUES ($1, $2, $3, $4, $5, $6, $7, $8)
                    RETURNING id
                    ''',
                    owner_id,
                    title.strip(),
                    description.strip(),
                    price,
                    size,
                    condition,
                    category,
                    photo_url
                )
                item = await get_item(item_id, conn=conn)

            logger.info(f"Created item {item_id} for user {owner_id}")
            return item

        except MarketplaceError:
            raise
        except Exception as e:
            logger.error(f"Error creating item: {e}")
            raise ItemError("Failed to create item")

    async def get_item(self, item_id: Union[str, uuid.UUID]) -> Dict[str, Any]:
        """Get an item by ID.

        Raises:
            ItemNotFoundError: If item doesn't exist
        """
        await self.ensure_pool()
        return await get_item(item_id, pool=self.pool)

    async def _get_owner(self, conn, item_id) -> uuid.UUID:
        owner_id = await conn.fetchval('SELECT user_id FROM items WHERE id = $1', item_id)
        if owner_id is None:
            raise ItemNotFoundError(f"Item {item_id} not found")
        return owner_id

    async def _check_status_change(self, conn, item_id, requested: str) -> None:
        """Check a hand-made status change against the item's locked current status.

        Raises:
            InvalidItemStatusError: If the transition isn't allowed
            ItemReservedError: If a pending or processing order holds the item
        """
        current = await conn.fetchval(
            'SELECT status FROM items WHERE id = $1 FOR UPDATE',
            item_id
        )
        if current == requested:
            return
        if not can_change_status(current, requested):
            raise InvalidItemStatusError(current, requested)
        if await conn.fetchval(OPEN_ORDER_EXISTS, item_id):
            raise ItemReservedError("Item is held by an open order")

    async def update_item(
        self,
        item_id: Union[str, uuid.UUID],
        updates: Dict[str, Any],
        requester
    ) -> Dict[str, Any]:
        """Update an item's details.

        Args:
            item_id: The item UUID
            updates: Dict containing any of the mutable fields; omitted fields keep their value
            requester: The authenticated user making the change

        Returns:
            Updated item details

        Raises:
            ItemNotFoundError: If item doesn't exist
            AuthorizationError: If requester is neither the owner nor an admin
            InvalidItemError: If update contains invalid fields or values
            InvalidItemStatusError: If the status change isn't allowed
            ItemReservedError: If the status is changed while an open order holds the item
        """
        updates = {k: v for k, v in updates.items() if v is not None}

        invalid_fields = set(updates.keys()) - MUTABLE_FIELDS
        if invalid_fields:
            raise InvalidItemError(f"Cannot update fields: {', '.join(sorted(invalid_fields))}")
        if 'price' in updates:
            updates['price'] = _validate_price(updates['price'])
        if 'status' in updates and updates['status'] not in ITEM_STATUSES:
            raise InvalidItemError(f"Invalid status: {updates['status']}")
        for field, value in updates.items():
            if isinstance(value, str) and not value.strip():
                raise InvalidItemError(f"{field} cannot be empty")

        await self.ensure_pool()

        try:
            async with self.pool.acquire() as conn:
                async with conn.transaction():
                    owner_id = await self._get_owner(conn, item_id)
                    authorize(requester, Action.ITEM_UPDATE, owner_id)

                    if 'status' in updates:
                        await self._check_status_change(conn, item_id, updates['status'])

                    if updates:
                        # Build update query
                        fields = []
                        values = []
                        for i, (field, value) in enumerate(updates.items(), start=1):
                            fields.append(f"{field} = ${i}")
                            values.append(value)
                        values.append(item_id)

                        await conn.execute(
                            f'''
                            UPDATE items
                            SET {', '.join(fields)}, updated_at = now()
                            WHERE id = ${len(values)}
                            ''',
                            *values
                        )
                        logger.info(f"Updated item {item_id} fields: {', '.join(updates.keys())}")

                    return await get_item(item_id, conn=conn)

        except MarketplaceError:
            raise
        except Exception as e:
            logger.error(f"Error updating item: {e}")
            raise ItemError("Failed to update item")

    async def delete_item(self, item_id: Union[str, uuid.UUID], requester) -> None:
        """Delete an item.

        Wishlist entries referencing the item are removed with it.

        Raises:
            ItemNotFoundError: If item doesn't exist
            AuthorizationError: If requester is neither the owner nor an admin
            ItemInUseError: If the item is part of an order
        """
        await self.ensure_pool()

        try:
            async with self.pool.acquire() as conn:
                owner_id = await self._get_owner(conn, item_id)
                authorize(requester, Action.ITEM_DELETE, owner_id)

                try:
                    await conn.execute('DELETE FROM items WHERE id = $1', item_id)
                except asyncpg.exceptions.ForeignKeyViolationError:
                    raise ItemInUseError("Item is part of an order and cannot be deleted")

            logger.info(f"Deleted item {item_id}")

        except MarketplaceError:
            raise
        except Exception as e:
            logger.error(f"Error deleting item: {e}")
            raise ItemError("Failed to delete item")

    async def list_user_items(
        self,
        user_id: Union[str, uuid.UUID],
        status: Optional[str] = None
    ) -> List[Dict[str, Any]]:
        """Get a user's items, newest first.

        Args:
            user_id: The owner's user ID
            status: Optional item status to filter by
        """
        if status is not None and status not in ITEM_STATUSES:
            raise InvalidItemError(f"Invalid status: {status}")

        await self.ensure_pool()

        query = f'{ITEM_SELECT} WHERE i.user_id = $1'
        params = [user_id]
        if status:
            query += ' AND i.status = $2'
            params.append(status)
        query += ' ORDER BY i.created_at DESC'

        async with self.pool.acquire() as conn:
            rows = await conn.fetch(query, *params)
        return [serialize_item(row) for row in rows]

    async def search_items(self, **filters) -> Dict[str, Any]:
        """Search the catalog. See ``items.search.search_items`` for filters."""
        await self.ensure_pool()
        return await search_items(pool=self.pool, **filters)

__all__ = [
    'ItemManager',
    'ItemError',
    'ItemNotFoundError',
    'InvalidItemError',
    'ItemInUseError',
    'InvalidItemStatusError',
    'ItemReservedError',
    'ITEM_STATUSES',
    'ITEM_TRANSITIONS',
    'MAX_PRICE',
    'can_change_status',
    'ITEM_SELECT',
    'SORT_ORDERS',
    'MUTABLE_FIELDS',
    'DEFAULT_LIMIT',
    'MAX_LIMIT',
    'get_item',
    'serialize_item',
    'search_items',
    'build_search_query',
    'escape_like'
]
