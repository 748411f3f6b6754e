# courier_ledger/database.py
from contextlib import contextmanager
from typing import Iterator

from sqlalchemy.engine import Engine
from sqlalchemy.pool import StaticPool
from sqlmodel import SQLModel, create_engine, Session

from courier_ledger.core.config import get_settings

# Import models so SQLModel metadata is populated before create_all()
from courier_ledger.models import counter as _counter_models  # noqa: F401
from courier_ledger.models import order as _order_models  # noqa: F401
from courier_ledger.models import slip as _slip_models  # noqa: F401

settings = get_settings()

# ---------------------------------------------------------
# In-memory SQLite engine
#
# - "sqlite://"          : private in-memory database
# - StaticPool           : every session shares the single connection,
#                          otherwise each new connection would see an
#                          empty database
# - check_same_thread=False: the connection may be handed between threads
#                          by an embedding application
# ---------------------------------------------------------


def build_engine(db_url: str | None = None) -> Engine:
    """
    Create an engine for the given URL (defaults to settings.DATABASE_URL).
    """
    url = db_url or settings.DATABASE_URL

    if url.startswith("sqlite"):
        return create_engine(
            url,
            echo=False,  # set to True if you want to debug SQL queries
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )

    return create_engine(url, echo=False, pool_pre_ping=True)


engine = build_engine()


def create_db_and_tables(bind: Engine | None = None) -> None:
    """
    Create all tables defined in SQLModel metadata if they do not exist.

    This is called once when the ledger is built.
    """
    SQLModel.metadata.create_all(bind or engine)


def get_session(bind: Engine | None = None) -> Iterator[Session]:
    """
    Yield a SQLModel Session bound to the ledger engine.

    Usage:

        for session in get_session():
            ledger.orders.list_orders(session)
    """
    with Session(bind or engine) as session:
        yield session


@contextmanager
def transaction(session: Session) -> Iterator[Session]:
    """
    Commit once on success, roll back everything on any exception.

    Services wrap every mutation in this block so multi-step operations
    (slip + status changes) are observed all-or-nothing.
    """
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
