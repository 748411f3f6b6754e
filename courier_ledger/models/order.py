# courier_ledger/models/order.py
from datetime import datetime, timezone

from sqlmodel import SQLModel, Field

from courier_ledger.models.status import OrderStatus


class Order(SQLModel, table=True):
    """
    A single delivery order (the unit of work of the ledger).

    Money fields:
      - cod: total amount collected from the recipient
      - item_price: merchant payable, always cod - (delivery_fee + additional_cost)
      - delivery_fee: retained by the operator
      - additional_cost: extra charges deducted from the merchant payable
      - driver_fee / driver_additional_fare: payable to the driver
    """

    __tablename__ = "orders"

    id: str = Field(
        primary_key=True,
        index=True,
        description="Order prefix + order number, never reused",
    )

    order_number: int = Field(
        unique=True,
        index=True,
        description="Monotonically increasing number assigned on creation",
    )

    source: str = Field(
        default="Manual",
        description="Origin channel: Manual | Shopify | WooCommerce | API",
    )
    reference_number: str = Field(default="")

    status: OrderStatus = Field(
        default=OrderStatus.PENDING,
        index=True,
    )
    # None until the first status change
    previous_status: OrderStatus | None = Field(default=None)

    merchant: str = Field(index=True)
    driver: str | None = Field(default=None, index=True)
    recipient: str
    phone: str
    whatsapp: str = Field(default="")
    address: str = Field(default="")
    region: str = Field(default="")
    city: str = Field(default="")

    cod: float = Field(default=0.0)
    item_price: float = Field(default=0.0)
    delivery_fee: float = Field(default=0.0)
    additional_cost: float = Field(default=0.0)
    driver_fee: float = Field(default=0.0)
    driver_additional_fare: float = Field(default=0.0)

    date: str = Field(
        default="",
        description="Business date of the order (ISO yyyy-mm-dd)",
    )
    notes: str = Field(default="")

    created_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        description="Creation timestamp (UTC)",
    )

    @property
    def company_due(self) -> float:
        """
        Operator's share: fees charged minus what is owed to the driver.
        """
        return (self.delivery_fee or 0.0) + (self.additional_cost or 0.0) - (
            (self.driver_fee or 0.0) + (self.driver_additional_fare or 0.0)
        )
