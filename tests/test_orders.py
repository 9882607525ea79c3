"""Tests for the orders module."""

import uuid
from decimal import Decimal
from unittest.mock import AsyncMock, patch

import pytest

from orders import (
    OrderManager,
    OrderNotFoundError,
    InvalidOrderError,
    ItemUnavailableError,
    SelfPurchaseError,
    InvalidStatusTransitionError,
    ORDER_STATUSES,
    TRANSITIONS,
    MAX_QUANTITY,
    can_transition,
    validate_line_items
)
from items import ItemNotFoundError
from errors import AuthorizationError, ConflictError


@pytest.fixture
def manager(pool):
    return OrderManager(pool=pool)


def locked_item(owner_id, price='100.00', status='available', item_id=None):
    return {
        'id': item_id or uuid.uuid4(),
        'user_id': owner_id,
        'price': Decimal(price),
        'status': status
    }


@pytest.mark.parametrize("current,requested", [
    ('pending', 'processing'),
    ('pending', 'cancelled'),
    ('processing', 'completed'),
])
def test_allowed_transitions(current, requested):
    assert can_transition(current, requested)


def test_everything_else_is_rejected():
    allowed = {('pending', 'processing'), ('pending', 'cancelled'), ('processing', 'completed')}
    for current in ORDER_STATUSES:
        for requested in ORDER_STATUSES:
            assert can_transition(current, requested) == ((current, requested) in allowed)


def test_terminal_states():
    assert TRANSITIONS['completed'] == set()
    assert TRANSITIONS['cancelled'] == set()


def test_validate_line_items_defaults_quantity():
    item_id = uuid.uuid4()
    assert validate_line_items([{'item_id': str(item_id)}]) == [{'item_id': item_id, 'quantity': 1}]


@pytest.mark.parametrize("lines", [
    [],
    [{'quantity': 1}],
    [{'item_id': 'not-a-uuid'}],
    [{'item_id': str(uuid.uuid4()), 'quantity': 0}],
    [{'item_id': str(uuid.uuid4()), 'quantity': True}],
    [{'item_id': str(uuid.uuid4()), 'quantity': MAX_QUANTITY + 1}],
    [{'item_id': str(uuid.uuid4()), 'quantity': 2 ** 63}],
])
def test_validate_line_items_rejects(lines):
    with pytest.raises(InvalidOrderError):
        validate_line_items(lines)


def test_validate_line_items_rejects_repeated_item():
    item_id = uuid.uuid4()
    with pytest.raises(InvalidOrderError):
        validate_line_items([{'item_id': item_id}, {'item_id': str(item_id), 'quantity': 2}])


@pytest.mark.asyncio
async def test_create_order_reserves_items_and_totals(manager, conn, user, other_user):
    first = locked_item(other_user.id, '100.00')
    second = locked_item(other_user.id, '12.50')
    by_id = {first['id']: first, second['id']: second}
    conn.fetchrow.side_effect = lambda sql, item_id: by_id[item_id]
    order_id = uuid.uuid4()
    conn.fetchval.return_value = order_id

    with patch.object(OrderManager, '_fetch_order', AsyncMock(return_value={'id': str(order_id)})):
        order = await manager.create_order(user.id, [
            {'item_id': first['id'], 'quantity': 1},
            {'item_id': second['id'], 'quantity': 2}
        ])

    assert order == {'id': str(order_id)}

    # Every item was locked before anything was written
    for call in conn.fetchrow.call_args_list:
        assert 'FOR UPDATE' in call.args[0]

    insert_order = conn.fetchval.call_args.args
    assert insert_order[1:] == (user.id, Decimal('125.00'))

    executed = [call.args for call in conn.execute.call_args_list]
    line_inserts = [args for args in executed if 'INSERT INTO order_items' in args[0]]
    reservations = [args for args in executed if "status = 'reserved'" in args[0]]
    assert [args[1:] for args in line_inserts] == [
        (order_id, first['id'], 1, Decimal('100.00')),
        (order_id, second['id'], 2, Decimal('12.50'))
    ]
    assert sorted(args[1] for args in reservations) == sorted([first['id'], second['id']])
    assert conn.transaction.return_value.exited_with is None


@pytest.mark.asyncio
async def test_create_order_unavailable_item_rolls_back(manager, conn, user, other_user):
    available = locked_item(other_user.id)
    reserved = locked_item(other_user.id, status='reserved')
    by_id = {available['id']: available, reserved['id']: reserved}
    conn.fetchrow.side_effect = lambda sql, item_id: by_id[item_id]

    with pytest.raises(ItemUnavailableError) as exc_info:
        await manager.create_order(user.id, [{'item_id': available['id']}, {'item_id': reserved['id']}])

    assert isinstance(exc_info.value, ConflictError)
    conn.fetchval.assert_not_called()
    conn.execute.assert_not_called()
    assert conn.transaction.return_value.exited_with is ItemUnavailableError


@pytest.mark.asyncio
async def test_create_order_total_too_large(manager, conn, user, other_user):
    conn.fetchrow.return_value = locked_item(other_user.id, '99999999.99')

    with pytest.raises(InvalidOrderError) as exc_info:
        await manager.create_order(user.id, [{'item_id': uuid.uuid4(), 'quantity': MAX_QUANTITY}])

    assert exc_info.value.status_code == 400
    conn.fetchval.assert_not_called()
    conn.execute.assert_not_called()
    assert conn.transaction.return_value.exited_with is InvalidOrderError


@pytest.mark.asyncio
async def test_create_order_missing_item(manager, conn, user):
    conn.fetchrow.return_value = None

    with pytest.raises(ItemNotFoundError):
        await manager.create_order(user.id, [{'item_id': uuid.uuid4()}])
    conn.execute.assert_not_called()


@pytest.mark.asyncio
async def test_create_order_self_purchase(manager, conn, user):
    conn.fetchrow.return_value = locked_item(user.id)

    with pytest.raises(SelfPurchaseError) as exc_info:
        await manager.create_order(user.id, [{'item_id': uuid.uuid4()}])

    assert isinstance(exc_info.value, AuthorizationError)
    conn.execute.assert_not_called()


@pytest.mark.asyncio
async def test_cancel_releases_items(manager, conn, user):
    order_id = uuid.uuid4()
    conn.fetchrow.return_value = {'id': order_id, 'user_id': user.id, 'status': 'pending'}

    with patch.object(OrderManager, '_fetch_order', AsyncMock(return_value={'status': 'cancelled'})):
        result = await manager.update_order_status(order_id, 'cancelled', user)

    assert result == {'status': 'cancelled'}
    executed = [call.args for call in conn.execute.call_args_list]
    assert executed[0][1:] == ('cancelled', order_id)
    assert 'UPDATE items' in executed[1][0]
    assert executed[1][1:] == ('available', order_id)


@pytest.mark.asyncio
async def test_complete_marks_items_sold(manager, conn, user):
    order_id = uuid.uuid4()
    conn.fetchrow.return_value = {'id': order_id, 'user_id': user.id, 'status': 'processing'}

    with patch.object(OrderManager, '_fetch_order', AsyncMock(return_value={})):
        await manager.update_order_status(order_id, 'completed', user)

    executed = [call.args for call in conn.execute.call_args_list]
    assert executed[1][1:] == ('sold', order_id)


@pytest.mark.asyncio
async def test_processing_touches_only_the_order(manager, conn, user):
    order_id = uuid.uuid4()
    conn.fetchrow.return_value = {'id': order_id, 'user_id': user.id, 'status': 'pending'}

    with patch.object(OrderManager, '_fetch_order', AsyncMock(return_value={})):
        await manager.update_order_status(order_id, 'processing', user)

    assert conn.execute.await_count == 1
    assert 'UPDATE orders' in conn.execute.call_args.args[0]


@pytest.mark.asyncio
@pytest.mark.parametrize("current,requested", [
    ('cancelled', 'cancelled'),
    ('completed', 'pending'),
    ('pending', 'completed'),
    ('processing', 'cancelled'),
])
async def test_invalid_transition(manager, conn, user, current, requested):
    conn.fetchrow.return_value = {'id': uuid.uuid4(), 'user_id': user.id, 'status': current}

    with pytest.raises(InvalidStatusTransitionError):
        await manager.update_order_status(uuid.uuid4(), requested, user)
    conn.execute.assert_not_called()


@pytest.mark.asyncio
async def test_update_status_unknown_value(manager, user):
    with pytest.raises(InvalidOrderError):
        await manager.update_order_status(uuid.uuid4(), 'shipped', user)


@pytest.mark.asyncio
async def test_update_status_by_non_buyer(manager, conn, user, admin):
    conn.fetchrow.return_value = {'id': uuid.uuid4(), 'user_id': user.id, 'status': 'pending'}

    with pytest.raises(AuthorizationError):
        await manager.update_order_status(uuid.uuid4(), 'cancelled', admin)
    conn.execute.assert_not_called()


@pytest.mark.asyncio
async def test_update_missing_order(manager, conn, user):
    conn.fetchrow.return_value = None

    with pytest.raises(OrderNotFoundError):
        await manager.update_order_status(uuid.uuid4(), 'cancelled', user)


@pytest.mark.asyncio
async def test_get_order_buyer_only(manager, user, other_user):
    order = {'id': str(uuid.uuid4()), 'user_id': str(user.id)}

    with patch.object(OrderManager, '_fetch_order', AsyncMock(return_value=order)):
        assert await manager.get_order(order['id'], user) == order
        with pytest.raises(AuthorizationError):
            await manager.get_order(order['id'], other_user)


@pytest.mark.asyncio
async def test_get_missing_order(manager, user):
    with patch.object(OrderManager, '_fetch_order', AsyncMock(return_value=None)):
        with pytest.raises(OrderNotFoundError):
            await manager.get_order(uuid.uuid4(), user)


@pytest.mark.asyncio
async def test_list_orders_requires_admin(manager, user):
    with pytest.raises(AuthorizationError):
        await manager.list_orders(user)


@pytest.mark.asyncio
async def test_list_orders_paginates(manager, conn, admin):
    conn.fetchval.return_value = 12
    conn.fetch.return_value = [{'id': uuid.uuid4()} for _ in range(5)]

    with patch.object(OrderManager, '_fetch_order', AsyncMock(side_effect=lambda c, oid: {'id': str(oid)})):
        result = await manager.list_orders(admin, status='pending', page=2, limit=5)

    assert len(result['orders']) == 5
    assert result['pagination'] == {'total': 12, 'page': 2, 'limit': 5, 'pages': 3}
    assert conn.fetch.call_args.args[1:] == ('pending', 5, 5)
