""" Fetch a single item together with its owner summary """
from typing import Dict, Any, Union
import uuid

from database import get_pool
from .exceptions import ItemNotFoundError

ITEM_STATUSES = ('available', 'reserved', 'sold')

# Items are always read joined with their owner's public fields
ITEM_SELECT = '''
    SELECT i.*, u.name AS owner_name, u.email AS owner_email
    FROM items i
    JOIN users u ON u.id = i.user_id
'''

def serialize_item(row) -> Dict[str, Any]:
    """Convert an item row (joined with its owner) to a JSON-ready dict."""
    return {
        'id': str(row['id']),
        'title': row['title'],
        'description': row['description'],
        'price': str(row['price']),
        'size': row['size'],
        'condition': row['condition'],
        'category': row['category'],
        'photo_url': row['photo_url'],
        'status': row['status'],
        'user_id': str(row['user_id']),
        'owner': {
            'id': str(row['user_id']),
            'name': row['owner_name'],
            'email': row['owner_email']
        },
        'created_at': row['created_at'].isoformat() if row['created_at'] else None,
        'updated_at': row['updated_at'].isoformat() if row['updated_at'] else None
    }

async def get_item(item_id: Union[str, uuid.UUID], pool=None, conn=None) -> Dict[str, Any]:
    """Get an item by ID.

    Args:
        item_id: The item UUID
        pool: Optional database pool
        conn: Optional connection to read on, e.g. inside a running transaction

    Returns:
        Dict containing item details and its owner summary

    Raises:
        ItemNotFoundError: If item doesn't exist
    """
    if conn is not None:
        row = await conn.fetchrow(f'{ITEM_SELECT} WHERE i.id = $1', item_id)
    else:
        if pool is None:
            pool = await get_pool()
        async with pool.acquire() as conn:
            row = await conn.fetchrow(f'{ITEM_SELECT} WHERE i.id = $1', item_id)

    if not row:
        raise ItemNotFoundError(f"Item {item_id} not found")

    return serialize_item(row)
