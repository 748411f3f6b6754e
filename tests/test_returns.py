from datetime import date, datetime, timezone

import pytest
from pydantic import ValidationError

from courier_ledger.core.errors import LedgerValidationError
from courier_ledger.models.status import MerchantSlipStatus, OrderStatus
from courier_ledger.schemas.slip import DriverReturnSlipRead, MerchantReturnSlipRead, SlipFilter
from courier_ledger.services.returns_service import MERCHANT_SLIP_COUNTER, parse_slip_date


@pytest.fixture
def returned(make_order):
    def _make(merchant: str = "Merchant A", status: OrderStatus = OrderStatus.RETURNED, **kw):
        return make_order(merchant=merchant, status=status, **kw)

    return _make


# -------- driver -> branch --------


def test_orders_with_driver_includes_postponed(ledger, session, returned):
    r = returned(driver="Ali")
    p = returned(driver="Ali", status=OrderStatus.POSTPONED)
    returned(driver="Ali", status=OrderStatus.DELIVERED)
    returned(driver="Sami")

    ids = {o.id for o in ledger.returns.orders_with_driver(session, "Ali")}
    assert ids == {r.id, p.id}


def test_receive_from_driver(ledger, session, returned):
    a = returned(driver="Ali")
    b = returned(driver="Ali", status=OrderStatus.CANCELLED)

    slip = ledger.returns.receive_from_driver(session, "Ali", [a.id, b.id])

    assert slip.id.startswith("DS-")
    assert slip.item_count == 2
    assert [s["id"] for s in slip.orders] == [a.id, b.id]
    assert ledger.orders.get_order(session, a.id).status is OrderStatus.BRANCH_RETURNED
    assert ledger.orders.get_order(session, b.id).previous_status is OrderStatus.CANCELLED
    assert ledger.returns.orders_with_driver(session, "Ali") == []
    assert [s.id for s in ledger.returns.list_driver_slips(session, "Ali")] == [slip.id]

    read = DriverReturnSlipRead.model_validate(slip)
    assert read.order_ids == [a.id, b.id]


def test_receive_from_driver_rejects_orders_not_held(ledger, session, returned):
    held = returned(driver="Ali")
    elsewhere = returned(driver="Sami")

    with pytest.raises(LedgerValidationError):
        ledger.returns.receive_from_driver(session, "Ali", [held.id, elsewhere.id])

    assert ledger.orders.get_order(session, held.id).status is OrderStatus.RETURNED
    assert ledger.returns.list_driver_slips(session) == []


def test_mark_received_at_branch(ledger, session, returned):
    order = returned()
    result = ledger.returns.mark_received_at_branch(session, [order.id, "NOPE"])

    assert result.updated == [order.id]
    assert result.not_found == ["NOPE"]
    assert ledger.orders.get_order(session, order.id).status is OrderStatus.BRANCH_RETURNED


# -------- branch -> merchant --------


def test_awaiting_packaging(ledger, session, returned):
    r = returned()
    b = returned(status=OrderStatus.BRANCH_RETURNED)
    returned(status=OrderStatus.POSTPONED)
    other = returned(merchant="Merchant B")

    all_ids = {o.id for o in ledger.returns.orders_awaiting_merchant_packaging(session)}
    assert all_ids == {r.id, b.id, other.id}

    mine = ledger.returns.orders_awaiting_merchant_packaging(session, "Merchant A")
    assert {o.id for o in mine} == {r.id, b.id}


def test_merchant_slip_removes_orders_from_pool(ledger, session, returned):
    a = returned()
    b = returned()

    slip = ledger.returns.create_merchant_slip(session, [a.id, b.id])

    assert slip.id == "RS-2024-001"
    assert slip.merchant == "Merchant A"
    assert slip.items == 2
    assert slip.status is MerchantSlipStatus.READY_FOR_DELIVERY
    assert ledger.returns.orders_awaiting_merchant_packaging(session) == []

    read = MerchantReturnSlipRead.model_validate(slip)
    assert read.status is MerchantSlipStatus.READY_FOR_DELIVERY
    assert [s["merchant"] for s in read.orders] == ["Merchant A", "Merchant A"]


def test_merchant_slip_ids_are_sequential_per_year(ledger, session, returned):
    first = ledger.returns.create_merchant_slip(session, [returned().id])
    second = ledger.returns.create_merchant_slip(session, [returned().id])

    assert first.id == "RS-2024-001"
    assert second.id == "RS-2024-002"


def test_merchant_slips_list_newest_first_past_999(ledger, session, returned):
    ledger.returns.counter_repo.reset(session, MERCHANT_SLIP_COUNTER.format(year=2024), 999)
    session.commit()

    ledger.returns.clock = lambda: datetime(2024, 7, 1, 9, 0, tzinfo=timezone.utc)
    older = ledger.returns.create_merchant_slip(session, [returned().id])
    ledger.returns.clock = lambda: datetime(2024, 7, 20, 9, 0, tzinfo=timezone.utc)
    newer = ledger.returns.create_merchant_slip(session, [returned().id])

    assert (older.id, newer.id) == ("RS-2024-999", "RS-2024-1000")
    assert [s.id for s in ledger.returns.list_merchant_slips(session)] == [newer.id, older.id]


def test_merchant_slip_rejects_mixed_merchants(ledger, session, returned):
    a = returned(merchant="Merchant A")
    b = returned(merchant="Merchant B")

    with pytest.raises(LedgerValidationError) as exc:
        ledger.returns.create_merchant_slip(session, [a.id, b.id])

    assert exc.value.context["merchants"] == ["Merchant A", "Merchant B"]
    assert ledger.returns.list_merchant_slips(session) == []
    assert len(ledger.returns.orders_awaiting_merchant_packaging(session)) == 2


def test_merchant_slip_rejects_empty_and_packaged(ledger, session, returned):
    order = returned()
    with pytest.raises(LedgerValidationError):
        ledger.returns.create_merchant_slip(session, [])

    ledger.returns.create_merchant_slip(session, [order.id])
    with pytest.raises(LedgerValidationError):
        ledger.returns.create_merchant_slip(session, [order.id])


def test_confirm_delivered_is_idempotent(ledger, session, returned):
    slip = ledger.returns.create_merchant_slip(session, [returned().id])

    first = ledger.returns.confirm_merchant_slip_delivered(session, slip.id)
    second = ledger.returns.confirm_merchant_slip_delivered(session, slip.id)

    assert first.status is MerchantSlipStatus.DELIVERED
    assert second.status is MerchantSlipStatus.DELIVERED
    assert ledger.returns.confirm_merchant_slip_delivered(session, "RS-1999-001") is None


def test_list_merchant_slips_filters(ledger, session, returned):
    a = ledger.returns.create_merchant_slip(session, [returned().id])
    b = ledger.returns.create_merchant_slip(session, [returned(merchant="Merchant B").id])
    ledger.returns.confirm_merchant_slip_delivered(session, b.id)

    by_merchant = ledger.returns.list_merchant_slips(session, SlipFilter(merchant="Merchant A"))
    assert [s.id for s in by_merchant] == [a.id]

    delivered = ledger.returns.list_merchant_slips(
        session, SlipFilter(status=MerchantSlipStatus.DELIVERED)
    )
    assert [s.id for s in delivered] == [b.id]


def test_date_range_skips_unparseable_dates(ledger, session, returned):
    good = ledger.returns.create_merchant_slip(session, [returned().id])
    bad = ledger.returns.create_merchant_slip(session, [returned().id])
    bad.date = "not-a-date"
    session.add(bad)
    session.commit()

    in_range = ledger.returns.list_merchant_slips(
        session, SlipFilter(start=date(2024, 7, 1), end=date(2024, 7, 31))
    )
    assert [s.id for s in in_range] == [good.id]

    out_of_range = ledger.returns.list_merchant_slips(
        session, SlipFilter(start=date(2024, 8, 1), end=date(2024, 8, 31))
    )
    assert out_of_range == []

    # a one-sided range leaves the dates unfiltered
    everything = ledger.returns.list_merchant_slips(session, SlipFilter(start=date(2030, 1, 1)))
    assert len(everything) == 2
    everything = ledger.returns.list_merchant_slips(session, SlipFilter(end=date(2000, 1, 1)))
    assert len(everything) == 2


def test_slip_filter_rejects_inverted_range():
    with pytest.raises(ValidationError):
        SlipFilter(start=date(2024, 8, 1), end=date(2024, 7, 1))


def test_parse_slip_date():
    assert parse_slip_date("2024-07-22T10:30:00Z") == date(2024, 7, 22)
    assert parse_slip_date("2024-07-22") == date(2024, 7, 22)
    assert parse_slip_date("yesterday") is None
    assert parse_slip_date(None) is None
