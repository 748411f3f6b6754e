# courier_ledger/main.py
import logging
from dataclasses import dataclass

from sqlalchemy.engine import Engine
from sqlmodel import Session

from courier_ledger.core.config import Settings, get_settings
from courier_ledger.database import build_engine, create_db_and_tables
from courier_ledger.repositories.counter_repo import CounterRepository
from courier_ledger.repositories.order_repo import OrderRepository
from courier_ledger.repositories.slip_repo import SlipRepository
from courier_ledger.services.ledger_service import OrderLedgerService
from courier_ledger.services.reporting_service import ReportingService
from courier_ledger.services.returns_service import ReturnsService
from courier_ledger.services.settlement_service import SettlementService

logger = logging.getLogger("courier_ledger")


@dataclass
class Ledger:
    """
    Composition root: one engine plus the services wired around it.

    Callers open a session per unit of work:

        ledger = build_ledger()
        with ledger.session() as session:
            ledger.orders.create_order(session, payload)
    """

    engine: Engine
    settings: Settings
    orders: OrderLedgerService
    settlement: SettlementService
    returns: ReturnsService
    reporting: ReportingService

    def session(self) -> Session:
        return Session(self.engine)


def build_ledger(
    settings: Settings | None = None,
    engine: Engine | None = None,
) -> Ledger:
    """
    Build a ready-to-use ledger.

    Startup:
      - configure logging
      - create the engine (in-memory SQLite by default) and its tables
    """
    settings = settings or get_settings()
    logging.basicConfig(level=settings.LOG_LEVEL)

    logger.info("🔄 Startup: creating %s tables...", settings.PROJECT_NAME)
    engine = engine or build_engine(settings.DATABASE_URL)
    try:
        create_db_and_tables(engine)
        logger.info("✅ Startup: ledger tables ready.")
    except Exception as e:
        logger.error(f"❌ Startup: table creation FAILED: {e}")
        raise

    order_repo = OrderRepository()
    slip_repo = SlipRepository()
    counter_repo = CounterRepository()

    orders = OrderLedgerService(order_repo, counter_repo, settings)
    settlement = SettlementService(orders, order_repo, slip_repo)
    returns = ReturnsService(orders, order_repo, slip_repo, counter_repo)
    reporting = ReportingService(order_repo, slip_repo, settlement)

    return Ledger(
        engine=engine,
        settings=settings,
        orders=orders,
        settlement=settlement,
        returns=returns,
        reporting=reporting,
    )
