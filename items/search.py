""" Search items in the catalog """
from typing import Optional, List, Dict, Any, Tuple
from decimal import Decimal
import logging

from database import get_pool
from .exceptions import InvalidItemError, ItemError
from .get_item import ITEM_SELECT, ITEM_STATUSES, serialize_item

logger = logging.getLogger(__name__)

DEFAULT_LIMIT = 10
MAX_LIMIT = 100

# Whitelisted ORDER BY clauses, keyed by the public sort name
SORT_ORDERS = {
    'newest': 'i.created_at DESC',
    'oldest': 'i.created_at ASC',
    'price_asc': 'i.price ASC, i.created_at DESC',
    'price_desc': 'i.price DESC, i.created_at DESC'
}

def escape_like(text: str) -> str:
    """Escape LIKE wildcards so the text matches literally."""
    return text.replace('\\', '\\\\').replace('%', '\\%').replace('_', '\\_')

def build_search_query(
        search: Optional[str] = None,
        min_price: Optional[Decimal] = None,
        max_price: Optional[Decimal] = None,
        size: Optional[str] = None,
        condition: Optional[str] = None,
        category: Optional[str] = None,
        status: Optional[str] = 'available',
        sort: str = 'newest'
    ) -> Tuple[str, str, List[Any]]:
        """Build the item search and count queries.

        Returns:
            Tuple of (select query without pagination, count query, params)

        Raises:
            InvalidItemError: If a filter value is invalid
        """
        if sort not in SORT_ORDERS:
            raise InvalidItemError(f"Invalid sort order: {sort}")
        if status is not None and status not in ITEM_STATUSES:
            raise InvalidItemError(f"Invalid status: {status}")
        if min_price is not None and max_price is not None and min_price > max_price:
            raise InvalidItemError("min_price cannot be greater than max_price")

        where = " WHERE 1=1"
        params = []
        param_idx = 1

        if search:
            where += (
                f" AND (i.title ILIKE ${param_idx} ESCAPE '\\'"
                f" OR i.description ILIKE ${param_idx} ESCAPE '\\')"
            )
            params.append(f"%{escape_like(search)}%")
            param_idx += 1

        if min_price is not None:
            where += f" AND i.price >= ${param_idx}"
            params.append(min_price)
            param_idx += 1

        if max_price is not None:
            where += f" AND i.price <= ${param_idx}"
            params.append(max_price)
            param_idx += 1

        # Exact-match filters
        for column, value in (('size', size), ('condition', condition),
                              ('category', category), ('status', status)):
            if value:
                where += f" AND i.{column} = ${param_idx}"
                params.append(value)
                param_idx += 1

        query = f"{ITEM_SELECT}{where} ORDER BY {SORT_ORDERS[sort]}"
        count_query = f"SELECT COUNT(*) FROM items i{where}"
        return query, count_query, params

async def search_items(
        search: Optional[str] = None,
        min_price: Optional[Decimal] = None,
        max_price: Optional[Decimal] = None,
        size: Optional[str] = None,
        condition: Optional[str] = None,
        category: Optional[str] = None,
        status: Optional[str] = 'available',
        sort: str = 'newest',
        page: int = 1,
        limit: int = DEFAULT_LIMIT,
        pool = None
    ) -> Dict[str, Any]:
        """Search items with various filters.

        Args:
            search: Optional text matched case-insensitively against title and description
            min_price: Optional minimum price
            max_price: Optional maximum price
            size: Optional exact size
            condition: Optional exact condition
            category: Optional exact category
            status: Item status to filter by (default: available)
            sort: One of newest, oldest, price_asc, price_desc
            page: Page number starting at 1
            limit: Page size between 1 and 100 (default: 10)

        Returns:
            Dict containing:
                - items: List of matching items with their owner summary
                - pagination: Dict with total, page, limit and pages
        """
        if page < 1:
            raise InvalidItemError("page must be at least 1")
        if limit < 1 or limit > MAX_LIMIT:
            raise InvalidItemError(f"limit must be between 1 and {MAX_LIMIT}")

        query, count_query, params = build_search_query(
            search=search,
            min_price=min_price,
            max_price=max_price,
            size=size,
            condition=condition,
            category=category,
            status=status,
            sort=sort
        )
        param_idx = len(params) + 1
        query += f" LIMIT ${param_idx} OFFSET ${param_idx + 1}"
        pagination_params = [limit, (page - 1) * limit]

        if pool is None:
            pool = await get_pool()

        logger.debug("Executing item search query: %s with params: %r", query, params + pagination_params)

        try:
            async with pool.acquire() as conn:
                total = await conn.fetchval(count_query, *params)
                rows = await conn.fetch(query, *(params + pagination_params))
        except Exception as e:
            logger.exception("Database error executing item search: %s", str(e))
            raise ItemError("Failed to search items")

        return {
            'items': [serialize_item(row) for row in rows],
            'pagination': {
                'total': total,
                'page': page,
                'limit': limit,
                'pages': (total + limit - 1) // limit
            }
        }
