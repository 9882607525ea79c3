"""Tests for the items module."""

import uuid
from decimal import Decimal

import asyncpg
import pytest

from items import (
    ItemManager,
    ItemNotFoundError,
    InvalidItemError,
    ItemInUseError,
    InvalidItemStatusError,
    ItemReservedError,
    MAX_PRICE,
    build_search_query,
    can_change_status,
    search_items,
    serialize_item
)
from errors import AuthorizationError, ConflictError, InternalError
from factories import item_row


@pytest.fixture
def manager(pool):
    return ItemManager(pool=pool)


def test_serialize_item_includes_owner_summary():
    row = item_row()
    item = serialize_item(row)

    assert item['id'] == str(row['id'])
    assert item['price'] == '45.00'
    assert item['owner'] == {
        'id': str(row['user_id']),
        'name': 'Sam',
        'email': 'sam@example.com'
    }


def test_search_query_defaults_to_available_newest():
    query, count_query, params = build_search_query()

    assert params == ['available']
    assert 'i.status = $1' in query
    assert query.rstrip().endswith('ORDER BY i.created_at DESC')
    assert count_query.startswith('SELECT COUNT(*) FROM items i')
    assert 'ORDER BY' not in count_query


def test_search_query_numbers_parameters_in_order():
    query, count_query, params = build_search_query(
        search='denim',
        min_price=Decimal('10'),
        max_price=Decimal('50'),
        size='M',
        category='Outerwear',
        sort='price_asc'
    )

    assert params == ['%denim%', Decimal('10'), Decimal('50'), 'M', 'Outerwear', 'available']
    assert "(i.title ILIKE $1 ESCAPE '\\' OR i.description ILIKE $1 ESCAPE '\\')" in query
    assert 'i.price >= $2' in query
    assert 'i.price <= $3' in query
    assert 'i.size = $4' in query
    assert 'i.category = $5' in query
    assert 'i.status = $6' in count_query
    assert 'ORDER BY i.price ASC' in query


def test_search_query_without_status_filter():
    _, _, params = build_search_query(status=None)
    assert params == []


@pytest.mark.parametrize("search,pattern", [
    ('%', r'%\%%'),
    ('50%_off', r'%50\%\_off%'),
    ('back\\slash', r'%back\\slash%'),
])
def test_search_text_matches_literally(search, pattern):
    _, _, params = build_search_query(search=search, status=None)
    assert params == [pattern]


@pytest.mark.parametrize("kwargs", [
    {'sort': 'random'},
    {'status': 'lost'},
    {'min_price': Decimal('20'), 'max_price': Decimal('10')},
])
def test_search_query_rejects_bad_filters(kwargs):
    with pytest.raises(InvalidItemError):
        build_search_query(**kwargs)


@pytest.mark.asyncio
async def test_search_items_paginates(pool, conn):
    conn.fetchval.return_value = 23
    conn.fetch.return_value = [item_row(), item_row()]

    result = await search_items(page=3, limit=10, pool=pool)

    assert result['pagination'] == {'total': 23, 'page': 3, 'limit': 10, 'pages': 3}
    assert len(result['items']) == 2
    args = conn.fetch.call_args.args
    assert args[0].rstrip().endswith('LIMIT $2 OFFSET $3')
    assert args[1:] == ('available', 10, 20)


@pytest.mark.asyncio
@pytest.mark.parametrize("page,limit", [(0, 10), (1, 0), (1, 101)])
async def test_search_items_rejects_bad_pagination(pool, page, limit):
    with pytest.raises(InvalidItemError):
        await search_items(page=page, limit=limit, pool=pool)


@pytest.mark.asyncio
async def test_create_item(manager, conn, user):
    row = item_row(owner_id=user.id)
    conn.fetchval.return_value = row['id']
    conn.fetchrow.return_value = row

    item = await manager.create_item(
        owner_id=user.id,
        title='Denim jacket',
        description='Barely worn',
        price=Decimal('45.00'),
        size='M',
        condition='Like new',
        category='Outerwear',
        photo_url='https://img.example.com/jacket.jpg'
    )

    assert item['status'] == 'available'
    assert item['user_id'] == str(user.id)


@pytest.mark.asyncio
@pytest.mark.parametrize("price", [
    Decimal('0'), Decimal('-3'), 'free', Decimal('NaN'),
    MAX_PRICE + 1, Decimal('1.005')
])
async def test_create_item_rejects_bad_price(manager, conn, user, price):
    with pytest.raises(InvalidItemError):
        await manager.create_item(
            owner_id=user.id, title='Hat', description='Wool', price=price,
            size='One Size', condition='Used', category='Accessories',
            photo_url='https://img.example.com/hat.jpg'
        )
    conn.fetchval.assert_not_called()


@pytest.mark.asyncio
async def test_create_item_requires_fields(manager, user):
    with pytest.raises(InvalidItemError):
        await manager.create_item(
            owner_id=user.id, title='Hat', description='', price=Decimal('5'),
            size='One Size', condition='Used', category='Accessories',
            photo_url='https://img.example.com/hat.jpg'
        )


@pytest.mark.asyncio
async def test_get_item_not_found(manager, conn):
    conn.fetchrow.return_value = None

    with pytest.raises(ItemNotFoundError):
        await manager.get_item(uuid.uuid4())


@pytest.mark.asyncio
async def test_update_item_by_owner(manager, conn, user):
    row = item_row(owner_id=user.id, price=Decimal('30.00'))
    conn.fetchval.return_value = user.id
    conn.fetchrow.return_value = row

    item = await manager.update_item(row['id'], {'price': Decimal('30.00'), 'title': None}, user)

    assert item['price'] == '30.00'
    sql, *values = conn.execute.call_args.args
    assert 'price = $1' in sql
    assert 'title' not in sql
    assert values == [Decimal('30.00'), row['id']]


@pytest.mark.asyncio
async def test_update_item_by_admin(manager, conn, user, admin):
    row = item_row(owner_id=user.id, status='sold')
    # owner, locked status, open order check
    conn.fetchval.side_effect = [user.id, 'reserved', False]
    conn.fetchrow.return_value = row

    item = await manager.update_item(row['id'], {'status': 'sold'}, admin)

    assert item['status'] == 'sold'
    assert 'FOR UPDATE' in conn.fetchval.call_args_list[1].args[0]
    conn.execute.assert_awaited_once()


@pytest.mark.asyncio
@pytest.mark.parametrize("current,requested", [
    ('sold', 'available'),
    ('sold', 'reserved'),
    ('available', 'sold'),
])
async def test_update_item_rejects_status_transition(manager, conn, user, current, requested):
    conn.fetchval.side_effect = [user.id, current, False]

    with pytest.raises(InvalidItemStatusError) as exc_info:
        await manager.update_item(uuid.uuid4(), {'status': requested}, user)

    assert isinstance(exc_info.value, ConflictError)
    assert exc_info.value.message == f"Cannot change item status from {current} to {requested}"
    conn.execute.assert_not_called()
    assert conn.transaction.return_value.exited_with is InvalidItemStatusError


@pytest.mark.asyncio
async def test_update_item_cannot_release_item_held_by_open_order(manager, conn, user):
    conn.fetchval.side_effect = [user.id, 'reserved', True]

    with pytest.raises(ItemReservedError) as exc_info:
        await manager.update_item(uuid.uuid4(), {'status': 'available'}, user)

    assert exc_info.value.status_code == 400
    assert "'pending', 'processing'" in conn.fetchval.call_args.args[0]
    conn.execute.assert_not_called()


@pytest.mark.asyncio
async def test_update_item_same_status_is_accepted(manager, conn, user):
    row = item_row(owner_id=user.id, status='sold')
    conn.fetchval.side_effect = [user.id, 'sold']
    conn.fetchrow.return_value = row

    await manager.update_item(row['id'], {'status': 'sold', 'title': 'Sold jacket'}, user)

    assert conn.fetchval.await_count == 2
    conn.execute.assert_awaited_once()


def test_item_transitions():
    assert can_change_status('available', 'reserved')
    assert can_change_status('reserved', 'available')
    assert can_change_status('reserved', 'sold')
    assert not can_change_status('sold', 'available')
    assert not can_change_status('available', 'sold')


@pytest.mark.asyncio
async def test_update_item_by_stranger(manager, conn, user, other_user):
    conn.fetchval.return_value = user.id

    with pytest.raises(AuthorizationError):
        await manager.update_item(uuid.uuid4(), {'title': 'Mine now'}, other_user)
    conn.execute.assert_not_called()


@pytest.mark.asyncio
@pytest.mark.parametrize("updates", [
    {'user_id': str(uuid.uuid4())},
    {'status': 'stolen'},
    {'price': Decimal('0')},
    {'title': '   '},
])
async def test_update_item_rejects_bad_updates(manager, user, updates):
    with pytest.raises(InvalidItemError):
        await manager.update_item(uuid.uuid4(), updates, user)


@pytest.mark.asyncio
async def test_update_missing_item(manager, conn, user):
    conn.fetchval.return_value = None

    with pytest.raises(ItemNotFoundError):
        await manager.update_item(uuid.uuid4(), {'title': 'New'}, user)


@pytest.mark.asyncio
async def test_delete_item_referenced_by_order(manager, conn, user):
    conn.fetchval.return_value = user.id
    conn.execute.side_effect = asyncpg.exceptions.ForeignKeyViolationError('order_items')

    with pytest.raises(ItemInUseError) as exc_info:
        await manager.delete_item(uuid.uuid4(), user)
    assert exc_info.value.status_code == 400


@pytest.mark.asyncio
async def test_delete_item_by_stranger(manager, conn, user, other_user):
    conn.fetchval.return_value = user.id

    with pytest.raises(AuthorizationError):
        await manager.delete_item(uuid.uuid4(), other_user)
    conn.execute.assert_not_called()


@pytest.mark.asyncio
async def test_list_user_items_filters_status(manager, conn, user):
    conn.fetch.return_value = [item_row(owner_id=user.id, status='sold')]

    items = await manager.list_user_items(user.id, 'sold')

    assert [i['status'] for i in items] == ['sold']
    sql, *params = conn.fetch.call_args.args
    assert 'i.status = $2' in sql
    assert params == [user.id, 'sold']


@pytest.mark.asyncio
async def test_store_failure_is_internal_error(manager, conn, user):
    conn.fetchval.side_effect = asyncpg.exceptions.NumericValueOutOfRangeError('numeric field overflow')

    with pytest.raises(InternalError) as exc_info:
        await manager.create_item(
            owner_id=user.id, title='Hat', description='Wool', price=Decimal('5'),
            size='One Size', condition='Used', category='Accessories',
            photo_url='https://img.example.com/hat.jpg'
        )

    assert exc_info.value.status_code == 500
    assert exc_info.value.message == "Failed to create item"
