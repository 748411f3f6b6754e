import pytest
from pydantic import ValidationError

from courier_ledger.core.errors import LedgerValidationError
from courier_ledger.models.status import OrderStatus
from courier_ledger.schemas.order import OrderCreate, OrderImport, OrderRead


# -------- create --------


def test_create_assigns_identity(ledger, session, make_order):
    first = make_order()
    second = make_order()

    assert first.id == "ORD-1"
    assert first.order_number == 1
    assert second.id == "ORD-2"
    assert second.order_number == 2
    assert first.previous_status is None
    assert first.status is OrderStatus.PENDING
    assert ledger.orders.next_order_number(session) == 3


def test_create_derives_item_price(make_order):
    order = make_order(cod=50, delivery_fee=2, additional_cost=0)
    assert order.item_price == 48


def test_driver_fee_follows_city(ledger, make_order):
    home = make_order(city=ledger.settings.HOME_CITY)
    other = make_order(city="الزرقاء")
    explicit = make_order(city="الزرقاء", driver_fee=3)

    assert home.driver_fee == ledger.settings.HOME_CITY_DRIVER_FEE
    assert other.driver_fee == ledger.settings.DEFAULT_DRIVER_FEE
    assert explicit.driver_fee == 3


def test_create_requires_identity_fields():
    with pytest.raises(ValidationError):
        OrderCreate(recipient="  ", phone="0791234567", merchant="M")
    with pytest.raises(ValidationError):
        OrderCreate(recipient="R", phone="0791234567")


def test_list_orders_most_recent_first(ledger, session, make_order):
    make_order()
    make_order()
    make_order()
    assert [o.order_number for o in ledger.orders.list_orders(session)] == [3, 2, 1]


def test_order_read_snapshot(make_order):
    order = make_order(cod=10, delivery_fee=2, additional_cost=1, driver_fee=1.5)
    read = OrderRead.model_validate(order)
    assert read.item_price == 7
    assert read.company_due == pytest.approx(1.5)


# -------- set_all --------


def _record(**kw):
    data = {"recipient": "R", "phone": "0790000000", "merchant": "M", "cod": 50, "delivery_fee": 2}
    data.update(kw)
    return OrderImport(**data)


def test_set_all_numbers_missing_and_duplicate(ledger, session):
    orders = ledger.orders.set_all(
        session,
        [
            _record(id="ORD-001", order_number=5),
            _record(id="ORD-002"),
            _record(id="ORD-003", order_number=5),
        ],
    )

    numbers = {o.id: o.order_number for o in orders}
    assert numbers == {"ORD-001": 5, "ORD-002": 6, "ORD-003": 7}
    assert ledger.orders.next_order_number(session) == 8


def test_set_all_then_create_keeps_numbers_unique(ledger, session, make_order):
    ledger.orders.set_all(session, [_record(id="ORD-001", order_number=1)])
    created = make_order()

    assert created.order_number == 2
    numbers = [o.order_number for o in ledger.orders.list_orders(session)]
    assert len(numbers) == len(set(numbers))


def test_set_all_replaces_previous_orders(ledger, session, make_order):
    make_order()
    make_order()
    ledger.orders.set_all(session, [_record(id="X-1", order_number=1)])

    assert [o.id for o in ledger.orders.list_orders(session)] == ["X-1"]


def test_set_all_generates_missing_ids(ledger, session):
    orders = ledger.orders.set_all(session, [_record(), _record()])
    assert sorted(o.id for o in orders) == ["ORD-1", "ORD-2"]


def test_set_all_rejects_duplicate_ids_without_mutation(ledger, session, make_order):
    make_order()
    with pytest.raises(LedgerValidationError) as exc:
        ledger.orders.set_all(session, [_record(id="A"), _record(id="A")])

    assert exc.value.context["order_ids"] == ["A"]
    assert [o.id for o in ledger.orders.list_orders(session)] == ["ORD-1"]


def test_set_all_accepts_empty_previous_status(ledger, session):
    orders = ledger.orders.set_all(session, [_record(id="ORD-001", previous_status="")])
    assert orders[0].previous_status is None


def test_set_all_rederives_item_price(ledger, session):
    orders = ledger.orders.set_all(
        session, [_record(id="A", cod=35.5, delivery_fee=1.5, additional_cost=0)]
    )
    assert orders[0].item_price == 34.0


# -------- status / field updates --------


def test_update_status_records_previous(ledger, session, make_order):
    order = make_order()
    updated = ledger.orders.update_status(session, order.id, OrderStatus.OUT_FOR_DELIVERY)

    assert updated.status is OrderStatus.OUT_FOR_DELIVERY
    assert updated.previous_status is OrderStatus.PENDING


def test_update_status_not_found_returns_none(ledger, session):
    assert ledger.orders.update_status(session, "NOPE", OrderStatus.DELIVERED) is None


def test_update_status_rejects_unknown_status(ledger, session, make_order):
    order = make_order()
    with pytest.raises(LedgerValidationError):
        ledger.orders.update_status(session, order.id, "TELEPORTED")


def test_update_field_plain(ledger, session, make_order):
    order = make_order()
    updated = ledger.orders.update_field(session, order.id, "recipient", "Updated User")
    assert updated.recipient == "Updated User"


def test_update_field_status_behaves_like_update_status(ledger, session, make_order):
    order = make_order()
    updated = ledger.orders.update_field(session, order.id, "status", "OUT_FOR_DELIVERY")

    assert updated.status is OrderStatus.OUT_FOR_DELIVERY
    assert updated.previous_status is OrderStatus.PENDING


def test_additional_cost_recomputes_item_price(ledger, session, make_order):
    order = make_order(cod=50, delivery_fee=2, additional_cost=0)
    assert order.item_price == 48

    updated = ledger.orders.update_field(session, order.id, "additional_cost", 3)
    assert updated.item_price == 45


@pytest.mark.parametrize(
    "edits",
    [
        [("cod", 100), ("delivery_fee", 5), ("additional_cost", 2.5)],
        [("additional_cost", 4), ("cod", 12), ("cod", 80), ("delivery_fee", 0)],
        [("delivery_fee", "abc"), ("cod", None), ("additional_cost", "7")],
    ],
)
def test_item_price_tracks_any_edit_sequence(ledger, session, make_order, edits):
    order = make_order()
    for field, value in edits:
        order = ledger.orders.update_field(session, order.id, field, value)
        assert order.item_price == order.cod - (order.delivery_fee + order.additional_cost)


def test_non_numeric_money_is_coerced_to_zero(ledger, session, make_order):
    order = make_order(cod=50, delivery_fee=2)
    updated = ledger.orders.update_field(session, order.id, "delivery_fee", "n/a")

    assert updated.delivery_fee == 0
    assert updated.item_price == 50


def test_update_field_rejects_ledger_owned_fields(ledger, session, make_order):
    order = make_order()
    for field in ("id", "order_number", "item_price", "previous_status", "bogus"):
        with pytest.raises(LedgerValidationError):
            ledger.orders.update_field(session, order.id, field, 1)


def test_update_field_not_found_returns_none(ledger, session):
    assert ledger.orders.update_field(session, "NOPE", "notes", "x") is None


# -------- batch operations --------


def test_bulk_update_skips_unknown_ids(ledger, session, make_order):
    order = make_order()
    assert order.id == "ORD-1"

    result = ledger.orders.bulk_update_status(
        session, ["X-nonexistent", "ORD-1"], OrderStatus.DELIVERED
    )

    assert ledger.orders.get_order(session, "ORD-1").status is OrderStatus.DELIVERED
    assert result.updated == ["ORD-1"]
    assert result.not_found == ["X-nonexistent"]


def test_bulk_update_sets_previous_status_for_each(ledger, session, make_order):
    a = make_order()
    b = make_order(status=OrderStatus.POSTPONED)
    ledger.orders.bulk_update_status(session, [a.id, b.id], OrderStatus.OUT_FOR_DELIVERY)

    assert ledger.orders.get_order(session, a.id).previous_status is OrderStatus.PENDING
    assert ledger.orders.get_order(session, b.id).previous_status is OrderStatus.POSTPONED


def test_assign_driver_only_to_assignable_orders(ledger, session, make_order):
    pending = make_order()
    on_road = make_order(status=OrderStatus.OUT_FOR_DELIVERY)

    result = ledger.orders.assign_driver(session, [pending.id, on_road.id, "NOPE"], "Ali")

    assert result.updated == [pending.id]
    assert result.skipped == [on_road.id]
    assert result.not_found == ["NOPE"]
    assert ledger.orders.get_order(session, pending.id).driver == "Ali"
    assert ledger.orders.get_order(session, on_road.id).driver is None


def test_assign_driver_requires_name(ledger, session, make_order):
    order = make_order()
    with pytest.raises(LedgerValidationError):
        ledger.orders.assign_driver(session, [order.id], "  ")


def test_delete_skips_unknown_and_never_reuses_numbers(ledger, session, make_order):
    make_order()
    make_order()
    third = make_order()

    removed = ledger.orders.delete_orders(session, [third.id, "NOPE"])
    assert removed == 1
    assert ledger.orders.get_order(session, third.id) is None

    again = make_order()
    assert again.order_number == 4
    assert again.id == "ORD-4"
