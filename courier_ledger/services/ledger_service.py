# courier_ledger/services/ledger_service.py
import logging
from collections.abc import Iterable
from typing import Any

from sqlmodel import Session

from courier_ledger.core.config import Settings
from courier_ledger.core.errors import LedgerValidationError
from courier_ledger.database import transaction
from courier_ledger.models.order import Order
from courier_ledger.models.status import OrderStatus, is_driver_assignable, parse_status
from courier_ledger.repositories.counter_repo import CounterRepository
from courier_ledger.repositories.order_repo import OrderRepository
from courier_ledger.schemas.order import BulkUpdateResult, OrderCreate, OrderImport

logger = logging.getLogger(__name__)

ORDER_NUMBER_COUNTER = "order_number"

# Fields that feed item_price = cod - (delivery_fee + additional_cost)
ITEM_PRICE_INPUTS = ("cod", "delivery_fee", "additional_cost")

MONEY_FIELDS = ITEM_PRICE_INPUTS + ("driver_fee", "driver_additional_fare")

TEXT_FIELDS = (
    "source",
    "reference_number",
    "merchant",
    "recipient",
    "phone",
    "whatsapp",
    "address",
    "region",
    "city",
    "date",
    "notes",
)

# id, order_number, previous_status, item_price and created_at are
# owned by the ledger and cannot be written directly.
EDITABLE_FIELDS = frozenset(TEXT_FIELDS + MONEY_FIELDS + ("status", "driver"))


def to_money(value: Any) -> float:
    """
    Coerce a money input to float; missing or non-numeric values count as 0.
    """
    if value is None or isinstance(value, bool):
        return 0.0
    try:
        return float(value)
    except (TypeError, ValueError):
        return 0.0


def derive_item_price(cod: Any, delivery_fee: Any, additional_cost: Any) -> float:
    return to_money(cod) - (to_money(delivery_fee) + to_money(additional_cost))


class OrderLedgerService:
    """
    Owns the canonical set of orders.

    Responsibilities:
      - assign ids / order numbers that are never reused
      - keep item_price consistent with cod, delivery_fee, additional_cost
      - record previous_status on every status change
      - batch operations skip unknown ids instead of failing

    Every mutating method runs in one transaction (commit on success,
    rollback on error).
    """

    def __init__(
        self,
        order_repo: OrderRepository,
        counter_repo: CounterRepository,
        settings: Settings,
    ):
        self.order_repo = order_repo
        self.counter_repo = counter_repo
        self.settings = settings

    # ---- internal helpers ----

    def _driver_fee_for_city(self, city: str | None) -> float:
        if city and city.strip() == self.settings.HOME_CITY:
            return self.settings.HOME_CITY_DRIVER_FEE
        return self.settings.DEFAULT_DRIVER_FEE

    def _next_identity(self, session: Session) -> tuple[str, int]:
        """
        Take the next order number and build the id from it.

        A number whose id is already taken (imported records can carry
        arbitrary ids) is skipped.
        """
        prefix = self.settings.ORDER_PREFIX
        while True:
            number = self.counter_repo.take(session, ORDER_NUMBER_COUNTER)
            order_id = f"{prefix}{number}"
            if self.order_repo.get_by_id(session, order_id) is None:
                return order_id, number

    def _apply_status(self, order: Order, new_status: OrderStatus) -> None:
        order.previous_status = order.status
        order.status = new_status

    def apply_bulk_status(
        self,
        session: Session,
        order_ids: Iterable[str],
        new_status: OrderStatus,
    ) -> BulkUpdateResult:
        """
        Status change for many ids without committing.

        Used by bulk_update_status and by the settlement/returns engines,
        which commit it together with their slip.
        """
        result = BulkUpdateResult()
        ids = list(dict.fromkeys(order_ids))
        found = {o.id: o for o in self.order_repo.list_by_ids(session, ids)}

        for order_id in ids:
            order = found.get(order_id)
            if order is None:
                result.not_found.append(order_id)
                continue
            self._apply_status(order, new_status)
            self.order_repo.update(session, order)
            result.updated.append(order_id)

        if result.not_found:
            logger.info("Status update skipped unknown orders: %s", result.not_found)
        return result

    # ---- reads ----

    def get_order(self, session: Session, order_id: str) -> Order | None:
        return self.order_repo.get_by_id(session, order_id)

    def list_orders(self, session: Session) -> list[Order]:
        """
        All orders, most recent first.
        """
        return self.order_repo.list_all(session)

    def next_order_number(self, session: Session) -> int:
        return self.counter_repo.peek(session, ORDER_NUMBER_COUNTER)

    # ---- mutations ----

    def create_order(self, session: Session, payload: OrderCreate) -> Order:
        """
        Create a new order.

        Steps:
          1. Take the next order number; id = ORDER_PREFIX + number.
          2. status = payload.status or settings.DEFAULT_STATUS.
          3. driver_fee from the destination city unless given.
          4. item_price derived from cod / delivery_fee / additional_cost.
        """
        with transaction(session):
            order_id, number = self._next_identity(session)

            driver_fee = payload.driver_fee
            if driver_fee is None:
                driver_fee = self._driver_fee_for_city(payload.city)

            order = Order(
                id=order_id,
                order_number=number,
                source=payload.source,
                reference_number=payload.reference_number,
                status=payload.status or self.settings.DEFAULT_STATUS,
                previous_status=None,
                merchant=payload.merchant,
                driver=payload.driver,
                recipient=payload.recipient,
                phone=payload.phone,
                whatsapp=payload.whatsapp,
                address=payload.address,
                region=payload.region,
                city=payload.city,
                cod=to_money(payload.cod),
                delivery_fee=to_money(payload.delivery_fee),
                additional_cost=to_money(payload.additional_cost),
                item_price=derive_item_price(
                    payload.cod, payload.delivery_fee, payload.additional_cost
                ),
                driver_fee=to_money(driver_fee),
                driver_additional_fare=to_money(payload.driver_additional_fare),
                date=payload.date,
                notes=payload.notes,
            )
            self.order_repo.add(session, order)

        session.refresh(order)
        logger.info("Created order %s (#%s)", order.id, order.order_number)
        return order

    def set_all(self, session: Session, records: list[OrderImport]) -> list[Order]:
        """
        Replace the whole ledger (bulk import / refresh).

        Rules:
          - duplicate ids in the batch -> LedgerValidationError, ledger untouched
          - records without an order_number, or reusing one already seen in
            the batch, are numbered sequentially after the highest number
          - missing ids are generated from the prefix and the number
          - the counter becomes max(order_number) + 1
        """
        seen_ids: set[str] = set()
        duplicates: list[str] = []
        for rec in records:
            if rec.id is None:
                continue
            if rec.id in seen_ids:
                duplicates.append(rec.id)
            seen_ids.add(rec.id)
        if duplicates:
            raise LedgerValidationError(
                "Duplicate order ids in import",
                order_ids=sorted(set(duplicates)),
            )

        taken_numbers: set[int] = set()
        numbers: list[int | None] = []
        for rec in records:
            n = rec.order_number
            if n is None or n <= 0 or n in taken_numbers:
                numbers.append(None)
            else:
                taken_numbers.add(n)
                numbers.append(n)

        next_free = max(taken_numbers, default=0) + 1
        for idx, n in enumerate(numbers):
            if n is None:
                numbers[idx] = next_free
                next_free += 1

        prefix = self.settings.ORDER_PREFIX
        orders: list[Order] = []
        for rec, number in zip(records, numbers):
            order_id = rec.id
            if order_id is None:
                order_id = f"{prefix}{number}"
                suffix = 1
                while order_id in seen_ids:
                    order_id = f"{prefix}{number}-{suffix}"
                    suffix += 1
                seen_ids.add(order_id)

            driver_fee = rec.driver_fee
            if driver_fee is None:
                driver_fee = self._driver_fee_for_city(rec.city)

            orders.append(
                Order(
                    id=order_id,
                    order_number=number,
                    source=rec.source,
                    reference_number=rec.reference_number,
                    status=rec.status,
                    previous_status=rec.previous_status,
                    merchant=rec.merchant,
                    driver=rec.driver,
                    recipient=rec.recipient,
                    phone=rec.phone,
                    whatsapp=rec.whatsapp,
                    address=rec.address,
                    region=rec.region,
                    city=rec.city,
                    cod=to_money(rec.cod),
                    delivery_fee=to_money(rec.delivery_fee),
                    additional_cost=to_money(rec.additional_cost),
                    item_price=derive_item_price(
                        rec.cod, rec.delivery_fee, rec.additional_cost
                    ),
                    driver_fee=to_money(driver_fee),
                    driver_additional_fare=to_money(rec.driver_additional_fare),
                    date=rec.date,
                    notes=rec.notes,
                )
            )

        with transaction(session):
            self.order_repo.delete_all(session)
            for order in orders:
                self.order_repo.add(session, order)
            highest = max((o.order_number for o in orders), default=0)
            self.counter_repo.reset(session, ORDER_NUMBER_COUNTER, highest + 1)

        logger.info("Ledger replaced with %d orders", len(orders))
        return self.order_repo.list_all(session)

    def update_status(
        self,
        session: Session,
        order_id: str,
        new_status: OrderStatus | str,
    ) -> Order | None:
        """
        previous_status := status, status := new_status.

        Returns None when the order does not exist.
        """
        try:
            status = parse_status(new_status)
        except ValueError:
            raise LedgerValidationError(f"Unknown status: {new_status}", status=new_status)

        with transaction(session):
            order = self.order_repo.get_by_id(session, order_id)
            if order is None:
                return None
            self._apply_status(order, status)
            self.order_repo.update(session, order)

        session.refresh(order)
        return order

    def update_field(
        self,
        session: Session,
        order_id: str,
        field: str,
        value: Any,
    ) -> Order | None:
        """
        Write a single editable field.

          - "status" behaves exactly like update_status
          - cod / delivery_fee / additional_cost recompute item_price from
            the post-write values
          - other money fields are coerced to float (invalid -> 0)

        Returns None when the order does not exist.
        """
        if field == "status":
            return self.update_status(session, order_id, value)

        if field not in EDITABLE_FIELDS:
            raise LedgerValidationError(f"Field is not editable: {field}", field=field)

        if field in MONEY_FIELDS:
            new_value: Any = to_money(value)
        elif field == "driver":
            new_value = str(value).strip() if value is not None else None
            new_value = new_value or None
        else:
            new_value = "" if value is None else str(value)
            if field in ("merchant", "recipient") and not new_value.strip():
                raise LedgerValidationError(f"{field} cannot be empty", field=field)

        with transaction(session):
            order = self.order_repo.get_by_id(session, order_id)
            if order is None:
                return None

            setattr(order, field, new_value)
            if field in ITEM_PRICE_INPUTS:
                order.item_price = derive_item_price(
                    order.cod, order.delivery_fee, order.additional_cost
                )
            self.order_repo.update(session, order)

        session.refresh(order)
        return order

    def bulk_update_status(
        self,
        session: Session,
        order_ids: Iterable[str],
        new_status: OrderStatus | str,
    ) -> BulkUpdateResult:
        """
        Apply update_status to every id; unknown ids are reported in
        `not_found` and never abort the rest.
        """
        try:
            status = parse_status(new_status)
        except ValueError:
            raise LedgerValidationError(f"Unknown status: {new_status}", status=new_status)

        with transaction(session):
            result = self.apply_bulk_status(session, order_ids, status)
        return result

    def assign_driver(
        self,
        session: Session,
        order_ids: Iterable[str],
        driver_name: str,
    ) -> BulkUpdateResult:
        """
        Assign a driver to many orders.

        Only orders in a driver-assignable status (PENDING, MONEY_RECEIVED)
        are changed; the others are reported in `skipped`.
        """
        driver_name = (driver_name or "").strip()
        if not driver_name:
            raise LedgerValidationError("Driver is required")

        result = BulkUpdateResult()
        with transaction(session):
            ids = list(dict.fromkeys(order_ids))
            found = {o.id: o for o in self.order_repo.list_by_ids(session, ids)}
            for order_id in ids:
                order = found.get(order_id)
                if order is None:
                    result.not_found.append(order_id)
                elif not is_driver_assignable(order.status):
                    result.skipped.append(order_id)
                else:
                    order.driver = driver_name
                    self.order_repo.update(session, order)
                    result.updated.append(order_id)
        return result

    def delete_orders(self, session: Session, order_ids: Iterable[str]) -> int:
        """
        Remove matching orders and return how many were removed.

        Orders referenced by slips are not protected: slips keep their own
        frozen copies.
        """
        with transaction(session):
            orders = self.order_repo.list_by_ids(session, order_ids)
            removed = self.order_repo.delete_many(session, orders)
        logger.info("Deleted %d orders", removed)
        return removed
