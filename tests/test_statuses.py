import pytest

from courier_ledger.models.status import (
    STATUS_TRAITS,
    OrderStatus,
    is_awaiting_packaging,
    is_collectible,
    is_driver_assignable,
    is_held_for_return,
    is_open,
    is_returnable,
    parse_status,
    statuses_matching,
)


def test_every_status_has_traits():
    assert set(STATUS_TRAITS) == set(OrderStatus)


def test_collectible_statuses():
    assert set(statuses_matching(is_collectible)) == {
        OrderStatus.DELIVERED,
        OrderStatus.EXCHANGE,
        OrderStatus.REFUSED_PAID,
        OrderStatus.REFUSED_UNPAID,
        OrderStatus.ARRIVAL_NO_ANSWER,
    }


def test_settled_status_is_not_collectible():
    assert not is_collectible(OrderStatus.MONEY_RECEIVED)


def test_returnable_and_derived_sets():
    returnable = set(statuses_matching(is_returnable))
    assert returnable == {
        OrderStatus.RETURNED,
        OrderStatus.CANCELLED,
        OrderStatus.REFUSED_PAID,
        OrderStatus.REFUSED_UNPAID,
        OrderStatus.EXCHANGE,
    }
    assert set(statuses_matching(is_held_for_return)) == returnable | {OrderStatus.POSTPONED}
    assert set(statuses_matching(is_awaiting_packaging)) == returnable | {
        OrderStatus.BRANCH_RETURNED
    }


def test_open_and_assignable():
    assert is_open(OrderStatus.PENDING)
    assert is_open(OrderStatus.POSTPONED)
    assert not is_open(OrderStatus.DELIVERED)
    assert is_driver_assignable(OrderStatus.PENDING)
    assert is_driver_assignable(OrderStatus.MONEY_RECEIVED)
    assert not is_driver_assignable(OrderStatus.OUT_FOR_DELIVERY)


def test_parse_status():
    assert parse_status("delivered") is OrderStatus.DELIVERED
    assert parse_status(OrderStatus.RETURNED) is OrderStatus.RETURNED
    with pytest.raises(ValueError):
        parse_status("LOST_IN_SPACE")
