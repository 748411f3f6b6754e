# courier_ledger/repositories/order_repo.py
from collections.abc import Iterable

from sqlmodel import Session, col, select

from courier_ledger.models.order import Order
from courier_ledger.models.status import OrderStatus


class OrderRepository:
    """
    Data access layer for orders.

    NOTE:
      - No commits here; ledger operations are multi-step transactions.
        The service is responsible for committing (see database.transaction).
    """

    # ---- Reads ----

    def get_by_id(self, session: Session, order_id: str) -> Order | None:
        return session.get(Order, order_id)

    def list_all(self, session: Session) -> list[Order]:
        """
        All orders, most recent first.
        """
        stmt = select(Order).order_by(col(Order.order_number).desc())
        return list(session.exec(stmt).all())

    def list_by_ids(self, session: Session, order_ids: Iterable[str]) -> list[Order]:
        ids = list(dict.fromkeys(order_ids))
        if not ids:
            return []
        stmt = select(Order).where(col(Order.id).in_(ids))
        found = {o.id: o for o in session.exec(stmt).all()}
        # preserve caller order
        return [found[i] for i in ids if i in found]

    def list_for_driver(
        self,
        session: Session,
        driver_name: str,
        statuses: Iterable[OrderStatus] | None = None,
    ) -> list[Order]:
        stmt = select(Order).where(Order.driver == driver_name)
        if statuses is not None:
            stmt = stmt.where(col(Order.status).in_(list(statuses)))
        return list(session.exec(stmt.order_by(col(Order.order_number))).all())

    def list_for_merchant(
        self,
        session: Session,
        merchant: str,
        statuses: Iterable[OrderStatus] | None = None,
    ) -> list[Order]:
        stmt = select(Order).where(Order.merchant == merchant)
        if statuses is not None:
            stmt = stmt.where(col(Order.status).in_(list(statuses)))
        return list(session.exec(stmt.order_by(col(Order.order_number))).all())

    def list_by_statuses(
        self,
        session: Session,
        statuses: Iterable[OrderStatus],
    ) -> list[Order]:
        stmt = (
            select(Order)
            .where(col(Order.status).in_(list(statuses)))
            .order_by(col(Order.order_number))
        )
        return list(session.exec(stmt).all())

    # ---- Writes (flush only) ----

    def add(self, session: Session, order: Order) -> Order:
        """
        Insert an Order without committing.
        """
        session.add(order)
        session.flush()
        return order

    def update(self, session: Session, order: Order) -> Order:
        session.add(order)
        session.flush()
        return order

    def delete_many(self, session: Session, orders: Iterable[Order]) -> int:
        count = 0
        for order in orders:
            session.delete(order)
            count += 1
        session.flush()
        return count

    def delete_all(self, session: Session) -> int:
        return self.delete_many(session, session.exec(select(Order)).all())
