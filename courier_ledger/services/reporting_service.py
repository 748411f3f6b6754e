# courier_ledger/services/reporting_service.py
from collections.abc import Iterable, Sequence
from enum import Enum
from typing import Any, Protocol

from sqlmodel import Session

from courier_ledger.core.errors import LedgerValidationError
from courier_ledger.models.status import (
    SETTLED_STATUS,
    OrderStatus,
    PaymentSlipStatus,
    is_open,
)
from courier_ledger.repositories.order_repo import OrderRepository
from courier_ledger.repositories.slip_repo import SlipRepository
from courier_ledger.schemas.directory import MERCHANT_ROLE, DirectoryEntry
from courier_ledger.schemas.report import (
    DriverFinancialSummary,
    MerchantFinancialSummary,
    OrderGroup,
    OrderQuery,
    SortState,
)
from courier_ledger.services.ledger_service import to_money
from courier_ledger.services.settlement_service import SettlementService

# Columns summed in table footers and group headers
FINANCIAL_COLUMNS: tuple[str, ...] = (
    "item_price",
    "delivery_fee",
    "additional_cost",
    "driver_fee",
    "driver_additional_fare",
    "company_due",
    "cod",
)

UNASSIGNED_GROUP = "Unassigned"


class OrderLike(Protocol):
    id: str
    status: OrderStatus


def _plain(value: Any) -> Any:
    if isinstance(value, Enum):
        return value.value
    return value


def _field_names(order: Any) -> list[str]:
    return list(type(order).model_fields)


def column_totals(
    orders: Iterable[OrderLike],
    columns: Sequence[str] = FINANCIAL_COLUMNS,
) -> dict[str, float]:
    """
    Per-column sums over `orders`. Only financial columns can be summed.

    Footer totals, selection totals and group totals all go through here.
    """
    unknown = [c for c in columns if c not in FINANCIAL_COLUMNS]
    if unknown:
        raise LedgerValidationError(
            f"Not a financial column: {', '.join(unknown)}", columns=unknown
        )

    totals = {c: 0.0 for c in columns}
    for order in orders:
        for c in columns:
            totals[c] += to_money(getattr(order, c, 0))
    return totals


def selection_totals(
    orders: Iterable[OrderLike],
    selected_ids: Iterable[str],
    columns: Sequence[str] = FINANCIAL_COLUMNS,
) -> dict[str, float]:
    selected = set(selected_ids)
    return column_totals((o for o in orders if o.id in selected), columns)


def _matches_filter(order: Any, field: str, operator: str, value: Any) -> bool:
    actual = _plain(getattr(order, field, None))
    expected = _plain(value)
    if operator == "contains":
        if actual is None:
            return False
        return str(expected) in str(actual)
    return actual == expected


def _matches_search(order: Any, needle: str) -> bool:
    for name in _field_names(order):
        value = _plain(getattr(order, name, None))
        if value is not None and needle in str(value).lower():
            return True
    return False


def filter_orders(orders: Iterable[OrderLike], query: OrderQuery) -> list[OrderLike]:
    """
    Apply status / driver / field filters, then the global search.
    """
    result = list(orders)

    if query.status is not None:
        result = [o for o in result if o.status == query.status]
    if query.driver:
        result = [o for o in result if getattr(o, "driver", None) == query.driver]

    for f in query.filters:
        result = [o for o in result if _matches_filter(o, f.field, f.operator, f.value)]

    if query.search:
        needle = query.search.lower()
        result = [o for o in result if _matches_search(o, needle)]

    return result


def _sort_key(value: Any) -> tuple[int, Any]:
    # numbers before strings so mixed columns never compare across types
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return (0, value)
    return (1, str(value).lower())


def sort_orders(orders: Iterable[OrderLike], sort: SortState | None) -> list[OrderLike]:
    """
    Stable sort on any field. Empty values always go last; no sort state
    keeps the input order.
    """
    items = list(orders)
    if sort is None:
        return items

    present = [o for o in items if _plain(getattr(o, sort.key, None)) is not None]
    missing = [o for o in items if _plain(getattr(o, sort.key, None)) is None]

    present.sort(
        key=lambda o: _sort_key(_plain(getattr(o, sort.key))),
        reverse=sort.direction == "descending",
    )
    return present + missing


def next_sort_state(current: SortState | None, key: str) -> SortState | None:
    """
    Clicking a column cycles ascending -> descending -> unsorted.
    """
    if current is None or current.key != key:
        return SortState(key=key, direction="ascending")
    if current.direction == "ascending":
        return SortState(key=key, direction="descending")
    return None


def group_orders(
    orders: Iterable[OrderLike],
    field: str,
    columns: Sequence[str] = FINANCIAL_COLUMNS,
) -> list[OrderGroup]:
    """
    Partition orders by `field`, keeping buckets in first-appearance order.
    Empty values land in the "Unassigned" bucket.
    """
    buckets: dict[str, list[OrderLike]] = {}
    for order in orders:
        value = _plain(getattr(order, field, None))
        key = UNASSIGNED_GROUP if value in (None, "") else str(value)
        buckets.setdefault(key, []).append(order)

    return [
        OrderGroup(
            key=key,
            count=len(members),
            pending_count=sum(1 for o in members if is_open(o.status)),
            totals=column_totals(members, columns),
            order_ids=[o.id for o in members],
        )
        for key, members in buckets.items()
    ]


class ReportingService:
    """
    Read-only projections over the ledger and the slips.

    Nothing here mutates state; every call reads the current data.
    """

    def __init__(
        self,
        order_repo: OrderRepository,
        slip_repo: SlipRepository,
        settlement: SettlementService,
    ):
        self.order_repo = order_repo
        self.slip_repo = slip_repo
        self.settlement = settlement

    def table(
        self,
        session: Session,
        query: OrderQuery | None = None,
        sort: SortState | None = None,
    ) -> list[OrderLike]:
        """
        Orders as the table shows them: filtered, then sorted.
        """
        orders = self.order_repo.list_all(session)
        if query is not None:
            orders = filter_orders(orders, query)
        return sort_orders(orders, sort)

    def grouped_table(
        self,
        session: Session,
        group_by: str,
        query: OrderQuery | None = None,
        sort: SortState | None = None,
    ) -> list[OrderGroup]:
        return group_orders(self.table(session, query, sort), group_by)

    def merchant_report(
        self,
        session: Session,
        directory: Iterable[DirectoryEntry],
    ) -> list[MerchantFinancialSummary]:
        """
        Payable position of every merchant in the directory.

          - total_payable: item_price of settled orders
          - paid_amount: item_price of orders in PAID payment slips
          - outstanding_payable = total_payable - paid_amount
        """
        paid_slips = self.slip_repo.list_merchant_payment_slips(
            session, status=PaymentSlipStatus.PAID
        )
        summaries: list[MerchantFinancialSummary] = []

        for entry in directory:
            if entry.role != MERCHANT_ROLE:
                continue

            name = entry.merchant_key
            orders = self.order_repo.list_for_merchant(session, name)
            delivered = [
                o for o in orders if o.status in (OrderStatus.DELIVERED, SETTLED_STATUS)
            ]
            settled = [o for o in orders if o.status == SETTLED_STATUS]

            total_payable = sum(to_money(o.item_price) for o in settled)
            paid = sum(
                s.total_payable for s in paid_slips if s.merchant_name == name
            )

            summaries.append(
                MerchantFinancialSummary(
                    merchant_id=entry.id,
                    name=name,
                    total_orders=len(orders),
                    delivered_orders=len(delivered),
                    total_cod=sum(to_money(o.cod) for o in delivered),
                    total_payable=total_payable,
                    paid_amount=paid,
                    outstanding_payable=total_payable - paid,
                )
            )

        return summaries

    def driver_debt_alerts(
        self,
        session: Session,
        directory: Iterable[DirectoryEntry],
        threshold: float,
    ) -> list[DriverFinancialSummary]:
        """
        Drivers holding more uncollected cash than `threshold`, largest first.
        """
        report = self.settlement.driver_report(session, directory)
        flagged = [d for d in report if d.outstanding_amount > threshold]
        return sorted(flagged, key=lambda d: d.outstanding_amount, reverse=True)
