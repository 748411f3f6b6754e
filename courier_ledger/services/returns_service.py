# courier_ledger/services/returns_service.py
import logging
import uuid
from collections.abc import Callable, Iterable, Sequence
from datetime import date, datetime, timezone

from sqlmodel import Session

from courier_ledger.core.errors import LedgerValidationError
from courier_ledger.database import transaction
from courier_ledger.models.order import Order
from courier_ledger.models.slip import DriverReturnSlip, MerchantReturnSlip
from courier_ledger.models.status import (
    BRANCH_STATUS,
    MerchantSlipStatus,
    is_awaiting_packaging,
    is_held_for_return,
    statuses_matching,
)
from courier_ledger.repositories.counter_repo import CounterRepository
from courier_ledger.repositories.order_repo import OrderRepository
from courier_ledger.repositories.slip_repo import SlipRepository
from courier_ledger.schemas.order import BulkUpdateResult
from courier_ledger.schemas.slip import SlipFilter
from courier_ledger.services.ledger_service import OrderLedgerService
from courier_ledger.services.settlement_service import snapshot

logger = logging.getLogger(__name__)

MERCHANT_SLIP_COUNTER = "merchant_return_slip:{year}"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def parse_slip_date(value: str | None) -> date | None:
    """
    Calendar date of a slip timestamp, or None when it cannot be parsed.
    """
    if not value:
        return None
    text = value.strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    try:
        return datetime.fromisoformat(text).date()
    except ValueError:
        return None


class ReturnsService:
    """
    Returned merchandise moving driver -> branch -> merchant.

    Responsibilities:
      - which returns a driver still carries
      - receipt at the branch (status -> BRANCH_RETURNED, driver return slip)
      - which returns await packaging for their merchant
      - merchant return slips (single merchant, READY_FOR_DELIVERY -> DELIVERED)
    """

    def __init__(
        self,
        ledger: OrderLedgerService,
        order_repo: OrderRepository,
        slip_repo: SlipRepository,
        counter_repo: CounterRepository,
        clock: Callable[[], datetime] = _utcnow,
    ):
        self.ledger = ledger
        self.order_repo = order_repo
        self.slip_repo = slip_repo
        self.counter_repo = counter_repo
        self.clock = clock

    # ---- internal helpers ----

    def _next_merchant_slip_id(self, session: Session, now: datetime) -> str:
        seq = self.counter_repo.take(session, MERCHANT_SLIP_COUNTER.format(year=now.year))
        return f"RS-{now.year}-{seq:03d}"

    # -------- Driver -> branch --------

    def orders_with_driver(self, session: Session, driver_name: str) -> list[Order]:
        """
        Returns (and postponed parcels) still carried by `driver_name`.
        """
        return self.order_repo.list_for_driver(
            session, driver_name, statuses_matching(is_held_for_return)
        )

    def mark_received_at_branch(
        self,
        session: Session,
        order_ids: Iterable[str],
    ) -> BulkUpdateResult:
        """
        Move orders into the branch pool (status BRANCH_RETURNED).
        Unknown ids are reported in `not_found`.
        """
        with transaction(session):
            result = self.ledger.apply_bulk_status(session, order_ids, BRANCH_STATUS)
        return result

    def receive_from_driver(
        self,
        session: Session,
        driver_name: str,
        order_ids: Sequence[str],
    ) -> DriverReturnSlip:
        """
        Record the returns a driver handed to the branch.

        The driver return slip and the status change are committed
        together.
        """
        driver_name = (driver_name or "").strip()
        if not driver_name:
            raise LedgerValidationError("Driver must be specified")

        ids = list(dict.fromkeys(order_ids))
        if not ids:
            raise LedgerValidationError("No orders selected for return")

        with transaction(session):
            held = {o.id: o for o in self.orders_with_driver(session, driver_name)}
            bad = [i for i in ids if i not in held]
            if bad:
                raise LedgerValidationError(
                    f"Orders are not held by {driver_name}: {', '.join(bad)}",
                    driver=driver_name,
                    order_ids=bad,
                )

            selected = [held[i] for i in ids]
            slip = DriverReturnSlip(
                id=f"DS-{uuid.uuid4().hex[:12].upper()}",
                driver_name=driver_name,
                date=self.clock().isoformat(),
                item_count=len(selected),
                order_ids=ids,
                orders=[snapshot(o) for o in selected],
            )
            self.slip_repo.add_driver_return_slip(session, slip)
            self.ledger.apply_bulk_status(session, ids, BRANCH_STATUS)

        session.refresh(slip)
        logger.info("Driver return slip %s: driver=%s orders=%d", slip.id, driver_name, slip.item_count)
        return slip

    def list_driver_slips(
        self,
        session: Session,
        driver_name: str | None = None,
    ) -> list[DriverReturnSlip]:
        return self.slip_repo.list_driver_return_slips(session, driver_name)

    # -------- Branch -> merchant --------

    def orders_awaiting_merchant_packaging(
        self,
        session: Session,
        merchant: str | None = None,
    ) -> list[Order]:
        """
        Returns eligible for a merchant slip that are not in any slip yet.

        Recomputed from the slips on every call.
        """
        packaged = self.slip_repo.merchant_return_order_ids(session)
        statuses = statuses_matching(is_awaiting_packaging)
        if merchant is None:
            candidates = self.order_repo.list_by_statuses(session, statuses)
        else:
            candidates = self.order_repo.list_for_merchant(session, merchant, statuses)
        return [o for o in candidates if o.id not in packaged]

    def create_merchant_slip(
        self,
        session: Session,
        order_ids: Sequence[str],
    ) -> MerchantReturnSlip:
        """
        Package returns for one merchant.

        Rules:
          - selection must be non-empty
          - every order must be awaiting packaging (not already in a slip)
          - all orders must belong to the same merchant
        On any violation nothing is created.
        """
        ids = list(dict.fromkeys(order_ids))
        if not ids:
            raise LedgerValidationError("No orders selected for the merchant slip")

        with transaction(session):
            awaiting = {o.id: o for o in self.orders_awaiting_merchant_packaging(session)}
            bad = [i for i in ids if i not in awaiting]
            if bad:
                raise LedgerValidationError(
                    f"Orders are not awaiting packaging: {', '.join(bad)}",
                    order_ids=bad,
                )

            selected = [awaiting[i] for i in ids]
            merchants = sorted({o.merchant for o in selected})
            if len(merchants) > 1:
                raise LedgerValidationError(
                    f"Orders belong to different merchants: {', '.join(merchants)}",
                    merchants=merchants,
                )

            now = self.clock()
            slip = MerchantReturnSlip(
                id=self._next_merchant_slip_id(session, now),
                merchant=merchants[0],
                date=now.isoformat(),
                items=len(ids),
                status=MerchantSlipStatus.READY_FOR_DELIVERY,
                order_ids=ids,
                orders=[snapshot(o) for o in selected],
            )
            self.slip_repo.add_merchant_return_slip(session, slip)

        session.refresh(slip)
        logger.info("Merchant return slip %s for %s (%d orders)", slip.id, slip.merchant, slip.items)
        return slip

    def confirm_merchant_slip_delivered(
        self,
        session: Session,
        slip_id: str,
    ) -> MerchantReturnSlip | None:
        """
        READY_FOR_DELIVERY -> DELIVERED.

        Idempotent: a missing or already delivered slip is returned as-is
        (None when missing).
        """
        with transaction(session):
            slip = self.slip_repo.get_merchant_return_slip(session, slip_id)
            if slip is None or slip.status == MerchantSlipStatus.DELIVERED:
                return slip
            slip.status = MerchantSlipStatus.DELIVERED
            self.slip_repo.update_merchant_return_slip(session, slip)

        session.refresh(slip)
        return slip

    def list_merchant_slips(
        self,
        session: Session,
        slip_filter: SlipFilter | None = None,
    ) -> list[MerchantReturnSlip]:
        """
        Merchant return slips filtered by merchant, status and date range.

        The date range applies only when both ends are set. Slips whose
        date cannot be parsed are then left out instead of failing the
        listing.
        """
        f = slip_filter or SlipFilter()
        slips = self.slip_repo.list_merchant_return_slips(session, f.merchant, f.status)

        if not (f.start and f.end):
            return slips

        result: list[MerchantReturnSlip] = []
        for slip in slips:
            slip_date = parse_slip_date(slip.date)
            if slip_date is None:
                logger.warning("Skipping slip %s with unparseable date %r", slip.id, slip.date)
                continue
            if f.start <= slip_date <= f.end:
                result.append(slip)
        return result
