# courier_ledger/services/settlement_service.py
import logging
import uuid
from collections.abc import Callable, Iterable, Sequence
from datetime import datetime, timezone

from sqlmodel import Session

from courier_ledger.core.errors import LedgerValidationError
from courier_ledger.database import transaction
from courier_ledger.models.order import Order
from courier_ledger.models.slip import CollectionSlip, MerchantPaymentSlip
from courier_ledger.models.status import (
    SETTLED_STATUS,
    OrderStatus,
    PaymentSlipStatus,
    is_collectible,
    statuses_matching,
)
from courier_ledger.repositories.order_repo import OrderRepository
from courier_ledger.repositories.slip_repo import SlipRepository
from courier_ledger.schemas.directory import DRIVER_ROLE, DirectoryEntry
from courier_ledger.schemas.report import DriverFinancialSummary
from courier_ledger.schemas.slip import SettlementTotals
from courier_ledger.services.ledger_service import OrderLedgerService, to_money

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _slip_id(prefix: str) -> str:
    return f"{prefix}-{uuid.uuid4().hex[:12].upper()}"


def snapshot(order: Order) -> dict:
    """
    Frozen JSON copy of an order as it is at this instant.
    """
    data = order.model_dump(mode="json")
    data["company_due"] = order.company_due
    return data


def settlement_totals(orders: Iterable[Order]) -> SettlementTotals:
    """
    total_cod = sum(cod), total_driver_fare = sum(driver_fee),
    net_payable = total_cod - total_driver_fare.

    The one function behind full-list and selection totals.
    """
    count = 0
    total_cod = 0.0
    total_fare = 0.0
    for o in orders:
        count += 1
        total_cod += to_money(o.cod)
        total_fare += to_money(o.driver_fee)
    return SettlementTotals(
        order_count=count,
        total_cod=total_cod,
        total_driver_fare=total_fare,
        net_payable=total_cod - total_fare,
    )


def _ineligible(requested: Sequence[str], eligible: Iterable[Order]) -> list[str]:
    eligible_ids = {o.id for o in eligible}
    return [i for i in requested if i not in eligible_ids]


class SettlementService:
    """
    Driver cash settlement and merchant payments.

    Responsibilities:
      - which orders' cash is still in a driver's hand (collectible)
      - turn a selection of them into an immutable CollectionSlip and move
        the orders to the settled status in the same transaction
      - per-driver financial summary
      - merchant payment slips for orders whose cash reached the branch
    """

    def __init__(
        self,
        ledger: OrderLedgerService,
        order_repo: OrderRepository,
        slip_repo: SlipRepository,
        clock: Callable[[], datetime] = _utcnow,
    ):
        self.ledger = ledger
        self.order_repo = order_repo
        self.slip_repo = slip_repo
        self.clock = clock

    # -------- Driver collections --------

    def orders_owed_by(self, session: Session, driver_name: str) -> list[Order]:
        """
        Orders of `driver_name` whose status is collectible.
        """
        return self.order_repo.list_for_driver(
            session, driver_name, statuses_matching(is_collectible)
        )

    def totals(self, orders: Iterable[Order]) -> SettlementTotals:
        return settlement_totals(orders)

    def selection_totals(
        self,
        session: Session,
        driver_name: str,
        order_ids: Iterable[str],
    ) -> SettlementTotals:
        """
        Totals for the selected subset of a driver's collectible orders.
        """
        selected = set(order_ids)
        return settlement_totals(
            o for o in self.orders_owed_by(session, driver_name) if o.id in selected
        )

    def confirm_collection(
        self,
        session: Session,
        driver_name: str,
        order_ids: Sequence[str],
    ) -> CollectionSlip:
        """
        Record the cash a driver handed over for the selected orders.

        Steps:
          1. Validate driver and non-empty selection.
          2. Every id must currently be owed by this driver.
          3. Create the CollectionSlip with frozen snapshots and totals.
          4. Move every order to MONEY_RECEIVED via the ledger.
          5. Commit 3 and 4 together (rollback both on failure).
        """
        driver_name = (driver_name or "").strip()
        if not driver_name:
            raise LedgerValidationError("Driver must be specified")

        ids = list(dict.fromkeys(order_ids))
        if not ids:
            raise LedgerValidationError("No orders selected for collection")

        with transaction(session):
            owed = self.orders_owed_by(session, driver_name)
            bad = _ineligible(ids, owed)
            if bad:
                raise LedgerValidationError(
                    f"Orders are not collectible from {driver_name}: {', '.join(bad)}",
                    driver=driver_name,
                    order_ids=bad,
                )

            by_id = {o.id: o for o in owed}
            selected = [by_id[i] for i in ids]
            totals = settlement_totals(selected)

            slip = CollectionSlip(
                id=_slip_id("PAY"),
                driver_name=driver_name,
                date=self.clock().isoformat(),
                item_count=len(selected),
                order_ids=ids,
                orders=[snapshot(o) for o in selected],
                total_cod=totals.total_cod,
                total_driver_fare=totals.total_driver_fare,
                net_payable=totals.net_payable,
            )
            self.slip_repo.add_collection_slip(session, slip)
            self.ledger.apply_bulk_status(session, ids, SETTLED_STATUS)

        session.refresh(slip)
        logger.info(
            "Collection slip %s: driver=%s orders=%d net=%.2f",
            slip.id,
            driver_name,
            slip.item_count,
            slip.net_payable,
        )
        return slip

    def get_collection_slip(self, session: Session, slip_id: str) -> CollectionSlip | None:
        return self.slip_repo.get_collection_slip(session, slip_id)

    def list_collection_slips(
        self,
        session: Session,
        driver_name: str | None = None,
    ) -> list[CollectionSlip]:
        return self.slip_repo.list_collection_slips(session, driver_name)

    def driver_report(
        self,
        session: Session,
        directory: Iterable[DirectoryEntry],
    ) -> list[DriverFinancialSummary]:
        """
        Cash position of every driver in the directory.

          - delivered: status DELIVERED
          - collected: status MONEY_RECEIVED
          - total_cod / total_driver_fees over delivered orders
          - collected_amount over collected orders
          - outstanding_amount = total_cod - collected_amount

        A negative outstanding amount is reported as-is and logged.
        """
        summaries: list[DriverFinancialSummary] = []

        for entry in directory:
            if entry.role != DRIVER_ROLE:
                continue

            driver_orders = self.order_repo.list_for_driver(session, entry.name)
            delivered = [o for o in driver_orders if o.status == OrderStatus.DELIVERED]
            collected = [o for o in driver_orders if o.status == SETTLED_STATUS]

            total_cod = sum(to_money(o.cod) for o in delivered)
            total_fees = sum(to_money(o.driver_fee) for o in delivered)
            collected_amount = sum(to_money(o.cod) for o in collected)
            outstanding = total_cod - collected_amount

            if outstanding < 0:
                logger.warning(
                    "Negative outstanding amount for driver %s: %.2f",
                    entry.name,
                    outstanding,
                )

            slips = self.slip_repo.list_collection_slips(session, entry.name)

            summaries.append(
                DriverFinancialSummary(
                    driver_id=entry.id,
                    name=entry.name,
                    total_orders=len(driver_orders),
                    delivered_orders=len(delivered),
                    collected_orders=len(collected),
                    pending_collection=len(delivered) - len(collected),
                    total_cod=total_cod,
                    total_driver_fees=total_fees,
                    net_payable=total_cod - total_fees,
                    collected_amount=collected_amount,
                    outstanding_amount=outstanding,
                    total_slips=len(slips),
                    last_collection_date=slips[0].date if slips else None,
                )
            )

        return summaries

    # -------- Merchant payments --------

    def orders_payable_to_merchant(self, session: Session, merchant: str) -> list[Order]:
        """
        Settled orders of `merchant` not yet placed in a payment slip.
        """
        already = self.slip_repo.merchant_payment_order_ids(session)
        return [
            o
            for o in self.order_repo.list_for_merchant(session, merchant, [SETTLED_STATUS])
            if o.id not in already
        ]

    def create_merchant_payment_slip(
        self,
        session: Session,
        merchant: str,
        order_ids: Sequence[str],
    ) -> MerchantPaymentSlip:
        """
        Package payable orders into a READY payment slip.

        Order statuses are left unchanged; the slip itself excludes the
        orders from later payable queries.
        """
        merchant = (merchant or "").strip()
        if not merchant:
            raise LedgerValidationError("Merchant must be specified")

        ids = list(dict.fromkeys(order_ids))
        if not ids:
            raise LedgerValidationError("No orders selected for payment")

        with transaction(session):
            payable = self.orders_payable_to_merchant(session, merchant)
            bad = _ineligible(ids, payable)
            if bad:
                raise LedgerValidationError(
                    f"Orders are not payable to {merchant}: {', '.join(bad)}",
                    merchant=merchant,
                    order_ids=bad,
                )

            by_id = {o.id: o for o in payable}
            selected = [by_id[i] for i in ids]

            slip = MerchantPaymentSlip(
                id=_slip_id("MPAY"),
                merchant_name=merchant,
                date=self.clock().isoformat(),
                item_count=len(selected),
                status=PaymentSlipStatus.READY,
                total_payable=sum(to_money(o.item_price) for o in selected),
                order_ids=ids,
                orders=[snapshot(o) for o in selected],
            )
            self.slip_repo.add_merchant_payment_slip(session, slip)

        session.refresh(slip)
        logger.info("Merchant payment slip %s for %s (%d orders)", slip.id, merchant, slip.item_count)
        return slip

    def mark_merchant_payment_paid(
        self,
        session: Session,
        slip_id: str,
    ) -> MerchantPaymentSlip | None:
        """
        READY -> PAID. Missing or already paid slips are a silent no-op.
        """
        with transaction(session):
            slip = self.slip_repo.get_merchant_payment_slip(session, slip_id)
            if slip is None or slip.status == PaymentSlipStatus.PAID:
                return slip
            slip.status = PaymentSlipStatus.PAID
            self.slip_repo.update_merchant_payment_slip(session, slip)

        session.refresh(slip)
        return slip

    def list_merchant_payment_slips(
        self,
        session: Session,
        merchant: str | None = None,
        status: PaymentSlipStatus | None = None,
    ) -> list[MerchantPaymentSlip]:
        return self.slip_repo.list_merchant_payment_slips(session, merchant, status)
