# courier_ledger/schemas/slip.py
from datetime import date
from typing import Any

from pydantic import ConfigDict, model_validator
from sqlmodel import SQLModel

from courier_ledger.models.status import MerchantSlipStatus, PaymentSlipStatus


class SettlementTotals(SQLModel):
    """
    Money owed by a driver for a set of orders.

      net_payable = total_cod - total_driver_fare
    """

    model_config = ConfigDict(extra="forbid")

    order_count: int
    total_cod: float
    total_driver_fare: float
    net_payable: float


class CollectionSlipRead(SQLModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    driver_name: str
    date: str
    item_count: int
    order_ids: list[str]
    orders: list[dict[str, Any]]
    total_cod: float
    total_driver_fare: float
    net_payable: float


class DriverReturnSlipRead(SQLModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    driver_name: str
    date: str
    item_count: int
    order_ids: list[str]
    orders: list[dict[str, Any]]


class MerchantReturnSlipRead(SQLModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    merchant: str
    date: str
    items: int
    status: MerchantSlipStatus
    order_ids: list[str]
    orders: list[dict[str, Any]]


class MerchantPaymentSlipRead(SQLModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    merchant_name: str
    date: str
    item_count: int
    status: PaymentSlipStatus
    total_payable: float
    order_ids: list[str]
    orders: list[dict[str, Any]]


class SlipFilter(SQLModel):
    """
    Read-side filter for merchant return slip listings.

    The date range is inclusive and only applied when both ends are set;
    a filter with only `start` or only `end` leaves the dates unfiltered.
    """

    model_config = ConfigDict(extra="forbid")

    merchant: str | None = None
    status: MerchantSlipStatus | None = None
    start: date | None = None
    end: date | None = None

    @model_validator(mode="after")
    def check_range(self) -> "SlipFilter":
        if self.start and self.end and self.start > self.end:
            raise ValueError("start date must not be after end date")
        return self
