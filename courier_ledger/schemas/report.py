# courier_ledger/schemas/report.py
from typing import Any, Literal

from pydantic import ConfigDict, field_validator
from sqlmodel import SQLModel, Field

from courier_ledger.models.order import Order
from courier_ledger.models.status import OrderStatus

SortDirection = Literal["ascending", "descending"]
FilterOperator = Literal["equals", "contains"]


class DriverFinancialSummary(SQLModel):
    """
    Per-driver cash position.

      pending_collection = delivered_orders - collected_orders
      outstanding_amount = total_cod - collected_amount (may be negative
      when upstream data is inconsistent; reported as-is)
    """

    model_config = ConfigDict(extra="forbid")

    driver_id: str
    name: str
    total_orders: int
    delivered_orders: int
    collected_orders: int
    pending_collection: int
    total_cod: float
    total_driver_fees: float
    net_payable: float
    collected_amount: float
    outstanding_amount: float
    total_slips: int
    last_collection_date: str | None = None


class MerchantFinancialSummary(SQLModel):
    """
    Per-merchant payable position.
    """

    model_config = ConfigDict(extra="forbid")

    merchant_id: str
    name: str
    total_orders: int
    delivered_orders: int
    total_cod: float
    total_payable: float
    paid_amount: float
    outstanding_payable: float


class SortState(SQLModel):
    model_config = ConfigDict(extra="forbid")

    key: str
    direction: SortDirection = "ascending"


class FieldFilter(SQLModel):
    model_config = ConfigDict(extra="forbid")

    field: str
    operator: FilterOperator = "equals"
    value: Any = None

    @field_validator("field")
    @classmethod
    def known_field(cls, v: str) -> str:
        if v not in Order.model_fields:
            raise ValueError(f"unknown order field: {v}")
        return v


class OrderQuery(SQLModel):
    """
    Table-style filtering: status, driver, custom field filters and a
    case-insensitive global search over every field value.
    """

    model_config = ConfigDict(extra="forbid")

    status: OrderStatus | None = None
    driver: str | None = None
    filters: list[FieldFilter] = Field(default_factory=list)
    search: str | None = None


class OrderGroup(SQLModel):
    """
    One bucket of a grouped order list.

      - pending_count: orders whose status is still open
      - totals: per financial column sums for this bucket
    """

    key: str
    count: int
    pending_count: int
    totals: dict[str, float]
    order_ids: list[str]
