"""Orders module for managing marketplace orders.

This module handles transactional order placement, order status transitions
and the item status changes that follow them:

- placing an order reserves every ordered item
- completing an order marks its items sold
- cancelling an order releases its items back to the catalog
"""
import logging
from decimal import Decimal
from typing import Dict, List, Optional, Any, Union
from uuid import UUID

from asyncpg.pool import Pool

from auth.policy import Action, authorize
from database import get_pool
from errors import (
    MarketplaceError, AuthorizationError, ConflictError, InternalError, NotFoundError, ValidationError
)
from items import ItemNotFoundError, serialize_item, DEFAULT_LIMIT, MAX_LIMIT

logger = logging.getLogger(__name__)

ORDER_STATUSES = ('pending', 'processing', 'completed', 'cancelled')

# Per-line quantity ceiling
MAX_QUANTITY = 1000

# Largest total a NUMERIC(12, 2) column holds
MAX_ORDER_TOTAL = Decimal('9999999999.99')

# Allowed status changes; completed and cancelled are terminal
TRANSITIONS = {
    'pending': {'processing', 'cancelled'},
    'processing': {'completed'},
    'completed': set(),
    'cancelled': set()
}

# Item status applied to every line of an order entering these states
ITEM_STATUS_ON_TRANSITION = {
    'completed': 'sold',
    'cancelled': 'available'
}

class OrderError(InternalError):
    """Order operation failed."""
    pass

class OrderNotFoundError(OrderError, NotFoundError):
    """Order not found."""
    pass

class InvalidOrderError(OrderError, ValidationError):
    """Invalid order data."""
    pass

class ItemUnavailableError(OrderError, ConflictError):
    """Item is not available."""
    pass

class SelfPurchaseError(OrderError, AuthorizationError):
    """You cannot order your own item."""
    pass

class InvalidStatusTransitionError(OrderError, ConflictError):
    """Invalid order status transition."""
    def __init__(self, current: str, requested: str):
        self.current = current
        self.requested = requested
        super().__init__(f"Cannot change order status from {current} to {requested}")

def can_transition(current: str, requested: str) -> bool:
    """Check whether an order may move from ``current`` to ``requested``."""
    return requested in TRANSITIONS.get(current, set())

def validate_line_items(line_items: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    """Normalize and validate requested order lines.

    Args:
        line_items: List of dicts with item_id and optional quantity (default 1)

    Returns:
        List of dicts with item_id as UUID and quantity as int

    Raises:
        InvalidOrderError: If the list is empty, a quantity is outside 1 to MAX_QUANTITY or an item repeats
    """
    if not line_items:
        raise InvalidOrderError("Order must contain at least one item")

    lines = []
    seen = set()
    for line in line_items:
        try:
            item_id = line['item_id'] if isinstance(line['item_id'], UUID) else UUID(str(line['item_id']))
        except (KeyError, ValueError):
            raise InvalidOrderError("Each order item needs a valid item_id")

        quantity = line.get('quantity', 1)
        if not isinstance(quantity, int) or isinstance(quantity, bool) or \
                not 1 <= quantity <= MAX_QUANTITY:
            raise InvalidOrderError(f"Invalid quantity for item {item_id}")

        if item_id in seen:
            raise InvalidOrderError(f"Item {item_id} appears more than once")
        seen.add(item_id)

        lines.append({'item_id': item_id, 'quantity': quantity})
    return lines

def _buyer_summary(row) -> Dict[str, Any]:
    return {
        'id': str(row['user_id']),
        'name': row['buyer_name'],
        'email': row['buyer_email']
    }

class OrderManager:
    """Manages order operations and state transitions."""

    def __init__(self, pool: Optional[Pool] = None) -> None:
        """Initialize order manager.

        Args:
            pool: Optional database connection pool. If not provided, will get from database module.
        """
        self.pool = pool

    async def ensure_pool(self):
        """Ensure we have a database pool."""
        if not self.pool:
            self.pool = await get_pool()

    async def _fetch_order(self, conn, order_id: UUID) -> Optional[Dict[str, Any]]:
        """Load an order with its buyer summary and lines."""
        order = await conn.fetchrow(
            '''
            SELECT o.*, u.name AS buyer_name, u.email AS buyer_email
            FROM orders o
            JOIN users u ON u.id = o.user_id
            WHERE o.id = $1
            ''',
            order_id
        )
        if not order:
            return None

        lines = await conn.fetch(
            '''
            SELECT
                oi.id AS line_id,
                oi.quantity AS line_quantity,
                oi.price AS unit_price,
                i.*,
                s.name AS owner_name,
                s.email AS owner_email
            FROM order_items oi
            JOIN items i ON i.id = oi.item_id
            JOIN users s ON s.id = i.user_id
            WHERE oi.order_id = $1
            ORDER BY oi.created_at, oi.id
            ''',
            order_id
        )

        return {
            'id': str(order['id']),
            'user_id': str(order['user_id']),
            'buyer': _buyer_summary(order),
            'status': order['status'],
            'total': str(order['total']),
            'items': [{
                'id': str(line['line_id']),
                'item_id': str(line['id']),
                'quantity': line['line_quantity'],
                'price': str(line['unit_price']),
                'item': serialize_item(line)
            } for line in lines],
            'created_at': order['created_at'].isoformat() if order['created_at'] else None,
            'updated_at': order['updated_at'].isoformat() if order['updated_at'] else None
        }

    async def create_order(
        self,
        buyer_id: Union[str, UUID],
        line_items: List[Dict[str, Any]]
    ) -> Dict[str, Any]:
        """Place an order for one or more items.

        All checks and writes happen in one transaction. Each item row is
        locked with SELECT ... FOR UPDATE, so concurrent orders for the same
        item serialize and only the first one sees it available.

        Args:
            buyer_id: The buyer's user ID
            line_items: List of dicts containing:
                - item_id: The item to buy
                - quantity: Optional quantity (default 1)

        Returns:
            Dict containing the order with its lines

        Raises:
            InvalidOrderError: If the line items are invalid or the total is too large
            ItemNotFoundError: If an item doesn't exist
            ItemUnavailableError: If an item isn't available
            SelfPurchaseError: If the buyer owns an item
            OrderError: If the order can't be stored
        """
        lines = validate_line_items(line_items)
        await self.ensure_pool()

        try:
            async with self.pool.acquire() as conn:
                async with conn.transaction():
                    # Lock items in a stable order to avoid deadlocks between orders
                    items = {}
                    for line in sorted(lines, key=lambda l: str(l['item_id'])):
                        items[line['item_id']] = await conn.fetchrow(
                            'SELECT id, user_id, price, status FROM items WHERE id = $1 FOR UPDATE',
                            line['item_id']
                        )

                    total = Decimal('0')
                    for line in lines:
                        item = items[line['item_id']]
                        if not item:
                            raise ItemNotFoundError(f"Item {line['item_id']} not found")
                        if item['status'] != 'available':
                            raise ItemUnavailableError(f"Item {line['item_id']} is not available")
                        if str(item['user_id']) == str(buyer_id):
                            raise SelfPurchaseError("You cannot order your own item")

                        line['price'] = item['price']
                        total += item['price'] * line['quantity']

                    if total > MAX_ORDER_TOTAL:
                        raise InvalidOrderError(f"Order total cannot exceed {MAX_ORDER_TOTAL}")

                    order_id = await conn.fetchval(
                        '''
                        INSERT INTO orders (user_id, status, total)
                        VALUES ($1, 'pending', $2)
                        RETURNING id
                        ''',
                        buyer_id,
                        total
                    )

                    for line in lines:
                        await conn.execute(
                            '''
                            INSERT INTO order_items (order_id, item_id, quantity, price)
                            VALUES ($1, $2, $3, $4)
                            ''',
                            order_id,
                            line['item_id'],
                            line['quantity'],
                            line['price']
                        )
                        await conn.execute(
                            '''
                            UPDATE items
                            SET status = 'reserved', updated_at = now()
                            WHERE id = $1
                            ''',
                            line['item_id']
                        )

                    order = await self._fetch_order(conn, order_id)

            logger.info(f"Order {order_id} placed by {buyer_id} for {len(lines)} item(s), total {total}")
            return order

        except MarketplaceError as e:
            logger.warning(f"Order rejected for {buyer_id}: {e}")
            raise
        except Exception as e:
            logger.error(f"Order creation failed: {e}")
            raise OrderError("Failed to create order")

    async def update_order_status(
        self,
        order_id: Union[str, UUID],
        new_status: str,
        requester
    ) -> Dict[str, Any]:
        """Move an order to a new status.

        Completing an order marks its items sold; cancelling it makes them
        available again. Other transitions only change the order row.

        Args:
            order_id: The order UUID
            new_status: Target status
            requester: The authenticated user making the change

        Returns:
            Updated order details

        Raises:
            InvalidOrderError: If the status value is unknown
            OrderNotFoundError: If the order doesn't exist
            AuthorizationError: If the requester isn't the buyer
            InvalidStatusTransitionError: If the transition isn't allowed
        """
        if new_status not in ORDER_STATUSES:
            raise InvalidOrderError(f"Invalid status: {new_status}")

        await self.ensure_pool()

        try:
            async with self.pool.acquire() as conn:
                async with conn.transaction():
                    order = await conn.fetchrow(
                        'SELECT id, user_id, status FROM orders WHERE id = $1 FOR UPDATE',
                        order_id
                    )
                    if not order:
                        raise OrderNotFoundError(f"Order {order_id} not found")

                    authorize(requester, Action.ORDER_UPDATE, order['user_id'])

                    if not can_transition(order['status'], new_status):
                        raise InvalidStatusTransitionError(order['status'], new_status)

                    await conn.execute(
                        'UPDATE orders SET status = $1, updated_at = now() WHERE id = $2',
                        new_status,
                        order_id
                    )

                    item_status = ITEM_STATUS_ON_TRANSITION.get(new_status)
                    if item_status:
                        await conn.execute(
                            '''
                            UPDATE items
                            SET status = $1, updated_at = now()
                            WHERE id IN (SELECT item_id FROM order_items WHERE order_id = $2)
                            ''',
                            item_status,
                            order_id
                        )

                    result = await self._fetch_order(conn, order_id)

            logger.info(f"Order {order_id} status changed from {order['status']} to {new_status}")
            return result

        except MarketplaceError:
            raise
        except Exception as e:
            logger.error(f"Error updating order {order_id}: {e}")
            raise OrderError("Failed to update order status")

    async def get_order(self, order_id: Union[str, UUID], requester=None) -> Dict[str, Any]:
        """Get order details by ID.

        Args:
            order_id: The order UUID
            requester: Optional authenticated user; when given, must be the buyer

        Raises:
            OrderNotFoundError: If the order doesn't exist
            AuthorizationError: If the requester isn't the buyer
        """
        await self.ensure_pool()

        async with self.pool.acquire() as conn:
            order = await self._fetch_order(conn, order_id)

        if not order:
            raise OrderNotFoundError(f"Order {order_id} not found")
        if requester is not None:
            authorize(requester, Action.ORDER_READ, order['user_id'])
        return order

    async def list_user_orders(
        self,
        buyer_id: Union[str, UUID],
        status: Optional[str] = None
    ) -> List[Dict[str, Any]]:
        """Get a buyer's orders, newest first."""
        if status is not None and status not in ORDER_STATUSES:
            raise InvalidOrderError(f"Invalid status: {status}")

        await self.ensure_pool()

        query = 'SELECT id FROM orders WHERE user_id = $1'
        params = [buyer_id]
        if status:
            query += ' AND status = $2'
            params.append(status)
        query += ' ORDER BY created_at DESC'

        async with self.pool.acquire() as conn:
            rows = await conn.fetch(query, *params)
            results = []
            for row in rows:
                order = await self._fetch_order(conn, row['id'])
                if order:
                    results.append(order)
        return results

    async def list_orders(
        self,
        requester,
        status: Optional[str] = None,
        page: int = 1,
        limit: int = DEFAULT_LIMIT
    ) -> Dict[str, Any]:
        """List all orders across buyers. Admin only.

        Args:
            requester: The authenticated user, must be an admin
            status: Optional order status to filter by
            page: Page number starting at 1
            limit: Page size between 1 and 100

        Returns:
            Dict containing:
                - orders: List of orders with buyer summary and lines
                - pagination: Dict with total, page, limit and pages
        """
        authorize(requester, Action.ORDER_LIST_ALL)

        if status is not None and status not in ORDER_STATUSES:
            raise InvalidOrderError(f"Invalid status: {status}")
        if page < 1 or limit < 1 or limit > MAX_LIMIT:
            raise InvalidOrderError("Invalid pagination parameters")

        await self.ensure_pool()

        where = ''
        params = []
        param_idx = 1
        if status:
            where = f' WHERE status = ${param_idx}'
            params.append(status)
            param_idx += 1

        query = (
            f'SELECT id FROM orders{where} ORDER BY created_at DESC '
            f'LIMIT ${param_idx} OFFSET ${param_idx + 1}'
        )

        async with self.pool.acquire() as conn:
            total = await conn.fetchval(f'SELECT COUNT(*) FROM orders{where}', *params)
            rows = await conn.fetch(query, *(params + [limit, (page - 1) * limit]))
            orders = []
            for row in rows:
                order = await self._fetch_order(conn, row['id'])
                if order:
                    orders.append(order)

        return {
            'orders': orders,
            'pagination': {
                'total': total,
                'page': page,
                'limit': limit,
                'pages': (total + limit - 1) // limit
            }
        }

__all__ = [
    'OrderManager',
    'OrderError',
    'OrderNotFoundError',
    'InvalidOrderError',
    'ItemUnavailableError',
    'SelfPurchaseError',
    'InvalidStatusTransitionError',
    'ORDER_STATUSES',
    'TRANSITIONS',
    'MAX_QUANTITY',
    'MAX_ORDER_TOTAL',
    'can_transition',
    'validate_line_items'
]
