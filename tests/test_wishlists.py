"""Tests for the wishlists module."""

import uuid
from datetime import datetime
from unittest.mock import AsyncMock, patch

import asyncpg
import pytest

from wishlists import (
    WishlistManager,
    WishlistNotFoundError,
    InvalidWishlistError,
    DuplicateWishlistItemError,
    WishlistItemNotFoundError
)
from items import ItemNotFoundError
from errors import AuthorizationError, ConflictError, NotFoundError
from factories import item_row


@pytest.fixture
def manager(pool):
    return WishlistManager(pool=pool)


@pytest.mark.asyncio
async def test_create_requires_name(manager, conn, user):
    with pytest.raises(InvalidWishlistError):
        await manager.create_wishlist(user.id, '   ')
    conn.fetchval.assert_not_called()


@pytest.mark.asyncio
async def test_get_wishlist_owner_only_even_when_public(manager, user, other_user):
    wishlist = {'id': str(uuid.uuid4()), 'user_id': str(user.id), 'is_public': True, 'items': []}

    with patch.object(WishlistManager, '_fetch_wishlist', AsyncMock(return_value=wishlist)):
        assert await manager.get_wishlist(wishlist['id'], user) == wishlist
        with pytest.raises(AuthorizationError):
            await manager.get_wishlist(wishlist['id'], other_user)


@pytest.mark.asyncio
async def test_get_missing_wishlist(manager, user):
    with patch.object(WishlistManager, '_fetch_wishlist', AsyncMock(return_value=None)):
        with pytest.raises(WishlistNotFoundError):
            await manager.get_wishlist(uuid.uuid4(), user)


@pytest.mark.asyncio
async def test_update_rejects_unknown_fields(manager, user):
    with pytest.raises(InvalidWishlistError):
        await manager.update_wishlist(uuid.uuid4(), {'user_id': str(uuid.uuid4())}, user)


@pytest.mark.asyncio
async def test_update_by_stranger(manager, conn, user, other_user):
    conn.fetchval.return_value = user.id

    with pytest.raises(AuthorizationError):
        await manager.update_wishlist(uuid.uuid4(), {'name': 'Mine'}, other_user)
    conn.execute.assert_not_called()


@pytest.mark.asyncio
async def test_delete_missing_wishlist(manager, conn, user):
    conn.fetchval.return_value = None

    with pytest.raises(WishlistNotFoundError):
        await manager.delete_wishlist(uuid.uuid4(), user)
    conn.execute.assert_not_called()


@pytest.mark.asyncio
async def test_add_item(manager, conn, user):
    wishlist_id = uuid.uuid4()
    item = item_row()
    conn.fetchval.side_effect = [user.id, False]
    conn.fetchrow.side_effect = [item, {'id': uuid.uuid4(), 'created_at': datetime(2024, 5, 1)}]

    entry = await manager.add_item(wishlist_id, item['id'], user)

    assert entry['wishlist_id'] == str(wishlist_id)
    assert entry['item_id'] == str(item['id'])
    assert entry['item']['title'] == item['title']


@pytest.mark.asyncio
async def test_add_duplicate_item(manager, conn, user):
    conn.fetchval.side_effect = [user.id, True]
    conn.fetchrow.return_value = item_row()

    with pytest.raises(DuplicateWishlistItemError) as exc_info:
        await manager.add_item(uuid.uuid4(), uuid.uuid4(), user)

    assert isinstance(exc_info.value, ConflictError)
    assert exc_info.value.message == "Item is already in wishlist"


@pytest.mark.asyncio
async def test_add_duplicate_item_race(manager, conn, user):
    conn.fetchval.side_effect = [user.id, False]
    conn.fetchrow.side_effect = [item_row(), asyncpg.exceptions.UniqueViolationError('pair')]

    with pytest.raises(DuplicateWishlistItemError):
        await manager.add_item(uuid.uuid4(), uuid.uuid4(), user)


@pytest.mark.asyncio
async def test_add_missing_item(manager, conn, user):
    conn.fetchval.return_value = user.id
    conn.fetchrow.return_value = None

    with pytest.raises(ItemNotFoundError):
        await manager.add_item(uuid.uuid4(), uuid.uuid4(), user)


@pytest.mark.asyncio
async def test_add_item_to_someone_elses_wishlist(manager, conn, user, other_user):
    conn.fetchval.return_value = user.id

    with pytest.raises(AuthorizationError):
        await manager.add_item(uuid.uuid4(), uuid.uuid4(), other_user)
    conn.fetchrow.assert_not_called()


@pytest.mark.asyncio
async def test_remove_missing_pair(manager, conn, user):
    conn.fetchval.side_effect = [user.id, None]

    with pytest.raises(WishlistItemNotFoundError) as exc_info:
        await manager.remove_item(uuid.uuid4(), uuid.uuid4(), user)

    assert isinstance(exc_info.value, NotFoundError)
    assert exc_info.value.message == "Item not found in wishlist"


@pytest.mark.asyncio
async def test_remove_item(manager, conn, user):
    conn.fetchval.side_effect = [user.id, uuid.uuid4()]

    assert await manager.remove_item(uuid.uuid4(), uuid.uuid4(), user) is None
