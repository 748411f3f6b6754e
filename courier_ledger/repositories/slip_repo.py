# courier_ledger/repositories/slip_repo.py
from sqlmodel import Session, col, select

from courier_ledger.models.slip import (
    CollectionSlip,
    DriverReturnSlip,
    MerchantPaymentSlip,
    MerchantReturnSlip,
)
from courier_ledger.models.status import MerchantSlipStatus, PaymentSlipStatus


class SlipRepository:
    """
    Data access layer for every slip kind.

    Slips are append-only, so there is no delete here. Listings are
    most recent first.
    """

    # ---- Collection slips (driver -> branch cash) ----

    def add_collection_slip(self, session: Session, slip: CollectionSlip) -> CollectionSlip:
        session.add(slip)
        session.flush()
        return slip

    def get_collection_slip(self, session: Session, slip_id: str) -> CollectionSlip | None:
        return session.get(CollectionSlip, slip_id)

    def list_collection_slips(
        self,
        session: Session,
        driver_name: str | None = None,
    ) -> list[CollectionSlip]:
        stmt = select(CollectionSlip)
        if driver_name is not None:
            stmt = stmt.where(CollectionSlip.driver_name == driver_name)
        stmt = stmt.order_by(col(CollectionSlip.date).desc())
        return list(session.exec(stmt).all())

    # ---- Driver return slips ----

    def add_driver_return_slip(
        self, session: Session, slip: DriverReturnSlip
    ) -> DriverReturnSlip:
        session.add(slip)
        session.flush()
        return slip

    def list_driver_return_slips(
        self,
        session: Session,
        driver_name: str | None = None,
    ) -> list[DriverReturnSlip]:
        stmt = select(DriverReturnSlip)
        if driver_name is not None:
            stmt = stmt.where(DriverReturnSlip.driver_name == driver_name)
        stmt = stmt.order_by(col(DriverReturnSlip.date).desc())
        return list(session.exec(stmt).all())

    # ---- Merchant return slips ----

    def add_merchant_return_slip(
        self, session: Session, slip: MerchantReturnSlip
    ) -> MerchantReturnSlip:
        session.add(slip)
        session.flush()
        return slip

    def get_merchant_return_slip(
        self, session: Session, slip_id: str
    ) -> MerchantReturnSlip | None:
        return session.get(MerchantReturnSlip, slip_id)

    def list_merchant_return_slips(
        self,
        session: Session,
        merchant: str | None = None,
        status: MerchantSlipStatus | None = None,
    ) -> list[MerchantReturnSlip]:
        stmt = select(MerchantReturnSlip)
        if merchant is not None:
            stmt = stmt.where(MerchantReturnSlip.merchant == merchant)
        if status is not None:
            stmt = stmt.where(MerchantReturnSlip.status == status)
        stmt = stmt.order_by(col(MerchantReturnSlip.date).desc())
        return list(session.exec(stmt).all())

    def merchant_return_order_ids(self, session: Session) -> set[str]:
        """
        Union of order ids across every merchant return slip.
        """
        ids: set[str] = set()
        for order_ids in session.exec(select(MerchantReturnSlip.order_ids)).all():
            ids.update(order_ids or [])
        return ids

    def update_merchant_return_slip(
        self, session: Session, slip: MerchantReturnSlip
    ) -> MerchantReturnSlip:
        session.add(slip)
        session.flush()
        return slip

    # ---- Merchant payment slips ----

    def add_merchant_payment_slip(
        self, session: Session, slip: MerchantPaymentSlip
    ) -> MerchantPaymentSlip:
        session.add(slip)
        session.flush()
        return slip

    def get_merchant_payment_slip(
        self, session: Session, slip_id: str
    ) -> MerchantPaymentSlip | None:
        return session.get(MerchantPaymentSlip, slip_id)

    def list_merchant_payment_slips(
        self,
        session: Session,
        merchant_name: str | None = None,
        status: PaymentSlipStatus | None = None,
    ) -> list[MerchantPaymentSlip]:
        stmt = select(MerchantPaymentSlip)
        if merchant_name is not None:
            stmt = stmt.where(MerchantPaymentSlip.merchant_name == merchant_name)
        if status is not None:
            stmt = stmt.where(MerchantPaymentSlip.status == status)
        stmt = stmt.order_by(col(MerchantPaymentSlip.date).desc())
        return list(session.exec(stmt).all())

    def merchant_payment_order_ids(self, session: Session) -> set[str]:
        ids: set[str] = set()
        for order_ids in session.exec(select(MerchantPaymentSlip.order_ids)).all():
            ids.update(order_ids or [])
        return ids

    def update_merchant_payment_slip(
        self, session: Session, slip: MerchantPaymentSlip
    ) -> MerchantPaymentSlip:
        session.add(slip)
        session.flush()
        return slip
