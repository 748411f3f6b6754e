# courier_ledger/schemas/directory.py
from pydantic import ConfigDict, field_validator
from sqlmodel import SQLModel

# Roles the ledger partitions orders by; other roles are ignored.
DRIVER_ROLE = "driver"
MERCHANT_ROLE = "merchant"


class DirectoryEntry(SQLModel):
    """
    Read-only view of one user from the external user directory.

    The ledger trusts the role tag and only uses the entry to match
    orders by name:
      - drivers match Order.driver on `name`
      - merchants match Order.merchant on `store_name` (falls back to `name`)
    """

    model_config = ConfigDict(extra="ignore")

    id: str
    name: str
    role: str
    store_name: str | None = None

    @field_validator("role")
    @classmethod
    def normalize_role(cls, v: str) -> str:
        return v.strip().lower()

    @property
    def merchant_key(self) -> str:
        return self.store_name or self.name
