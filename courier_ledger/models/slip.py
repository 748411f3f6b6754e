# courier_ledger/models/slip.py
from typing import Any

from sqlalchemy import Column, JSON
from sqlmodel import SQLModel, Field

from courier_ledger.models.status import MerchantSlipStatus, PaymentSlipStatus


class CollectionSlip(SQLModel, table=True):
    """
    Cash handed from a driver to the branch for a batch of orders.

    Append-only: rows are never updated or deleted. `orders` holds
    frozen JSON snapshots taken at confirmation time.
    """

    __tablename__ = "collection_slips"

    id: str = Field(primary_key=True, index=True)
    driver_name: str = Field(index=True)
    date: str = Field(description="ISO timestamp of creation")
    item_count: int

    order_ids: list[str] = Field(default_factory=list, sa_column=Column(JSON))
    orders: list[dict[str, Any]] = Field(default_factory=list, sa_column=Column(JSON))

    total_cod: float = Field(default=0.0)
    total_driver_fare: float = Field(default=0.0)
    net_payable: float = Field(default=0.0)


class DriverReturnSlip(SQLModel, table=True):
    """
    Returned merchandise received at the branch from one driver.
    """

    __tablename__ = "driver_return_slips"

    id: str = Field(primary_key=True, index=True)
    driver_name: str = Field(index=True)
    date: str
    item_count: int

    order_ids: list[str] = Field(default_factory=list, sa_column=Column(JSON))
    orders: list[dict[str, Any]] = Field(default_factory=list, sa_column=Column(JSON))


class MerchantReturnSlip(SQLModel, table=True):
    """
    Package of returned orders handed back to a single merchant.

    The only return slip with a lifecycle:
      READY_FOR_DELIVERY -> DELIVERED
    """

    __tablename__ = "merchant_return_slips"

    id: str = Field(primary_key=True, index=True, description="RS-<year>-<NNN>")
    merchant: str = Field(index=True)
    date: str
    items: int
    status: MerchantSlipStatus = Field(default=MerchantSlipStatus.READY_FOR_DELIVERY)

    order_ids: list[str] = Field(default_factory=list, sa_column=Column(JSON))
    orders: list[dict[str, Any]] = Field(default_factory=list, sa_column=Column(JSON))


class MerchantPaymentSlip(SQLModel, table=True):
    """
    Merchant payable prepared from orders whose cash reached the branch.

      READY -> PAID
    """

    __tablename__ = "merchant_payment_slips"

    id: str = Field(primary_key=True, index=True)
    merchant_name: str = Field(index=True)
    date: str
    item_count: int
    status: PaymentSlipStatus = Field(default=PaymentSlipStatus.READY)
    total_payable: float = Field(default=0.0)

    order_ids: list[str] = Field(default_factory=list, sa_column=Column(JSON))
    orders: list[dict[str, Any]] = Field(default_factory=list, sa_column=Column(JSON))
