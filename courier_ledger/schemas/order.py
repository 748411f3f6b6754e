# courier_ledger/schemas/order.py
from datetime import datetime

from pydantic import ConfigDict, field_validator
from sqlmodel import SQLModel, Field

from courier_ledger.models.status import OrderStatus


class OrderCreate(SQLModel):
    """
    Payload for creating an order.

    Caller provides:
      - recipient, phone, merchant (required, non-blank)
      - address / region / city, cod, delivery_fee, additional_cost
      - optional status, driver, driver_fee

    Ledger derives:
      - id, order_number
      - status = settings.DEFAULT_STATUS when not given
      - driver_fee from the destination city when not given
      - item_price = cod - (delivery_fee + additional_cost)
    """

    model_config = ConfigDict(extra="forbid")

    recipient: str
    phone: str
    merchant: str

    source: str = "Manual"
    reference_number: str = ""
    status: OrderStatus | None = None
    driver: str | None = None

    whatsapp: str = ""
    address: str = ""
    region: str = ""
    city: str = ""

    cod: float = 0.0
    delivery_fee: float = 0.0
    additional_cost: float = 0.0
    driver_fee: float | None = None
    driver_additional_fare: float = 0.0

    date: str = ""
    notes: str = ""

    @field_validator("recipient", "phone", "merchant")
    @classmethod
    def not_empty(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("field cannot be empty")
        return v

    @field_validator("driver")
    @classmethod
    def normalize_driver(cls, v: str | None) -> str | None:
        if v is None:
            return v
        v = v.strip()
        return v or None


class OrderImport(SQLModel):
    """
    One record of a bulk replace (set_all).

    Lenient on purpose: missing id / order_number are assigned by the
    ledger, and item_price is re-derived from the money fields.
    """

    model_config = ConfigDict(extra="ignore")

    id: str | None = None
    order_number: int | None = None

    recipient: str
    phone: str = ""
    merchant: str

    source: str = "Manual"
    reference_number: str = ""
    status: OrderStatus = OrderStatus.PENDING
    previous_status: OrderStatus | None = None
    driver: str | None = None

    whatsapp: str = ""
    address: str = ""
    region: str = ""
    city: str = ""

    cod: float = 0.0
    delivery_fee: float = 0.0
    additional_cost: float = 0.0
    driver_fee: float | None = None
    driver_additional_fare: float = 0.0

    date: str = ""
    notes: str = ""

    @field_validator("id", "driver")
    @classmethod
    def blank_to_none(cls, v: str | None) -> str | None:
        if v is None:
            return v
        v = v.strip()
        return v or None

    @field_validator("previous_status", mode="before")
    @classmethod
    def empty_previous_status(cls, v: object) -> object:
        # Imported records use "" for "no previous status"
        if v == "":
            return None
        return v


class OrderRead(SQLModel):
    """
    Read-only snapshot handed to the document/printing layer.
    """

    model_config = ConfigDict(from_attributes=True)

    id: str
    order_number: int
    source: str
    reference_number: str
    status: OrderStatus
    previous_status: OrderStatus | None
    merchant: str
    driver: str | None
    recipient: str
    phone: str
    whatsapp: str
    address: str
    region: str
    city: str
    cod: float
    item_price: float
    delivery_fee: float
    additional_cost: float
    driver_fee: float
    driver_additional_fare: float
    company_due: float
    date: str
    notes: str
    created_at: datetime


class BulkUpdateResult(SQLModel):
    """
    Outcome of a batch operation.

      - updated: ids that were changed
      - not_found: ids that do not exist (skipped, not an error)
      - skipped: ids that exist but were not eligible
    """

    updated: list[str] = Field(default_factory=list)
    not_found: list[str] = Field(default_factory=list)
    skipped: list[str] = Field(default_factory=list)
