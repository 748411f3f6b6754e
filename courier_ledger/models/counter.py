# courier_ledger/models/counter.py
from sqlmodel import SQLModel, Field


class Counter(SQLModel, table=True):
    """
    Named integer sequence.

    Known names:
      - "order_number": next number handed out by the order ledger
      - "merchant_return_slip:<year>": per-year return slip sequence
    """

    __tablename__ = "counters"

    name: str = Field(primary_key=True)
    next_value: int = Field(default=1)
