# courier_ledger/core/config.py
from functools import lru_cache

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from courier_ledger.models.status import OrderStatus


class Settings(BaseSettings):
    """
    Centralized ledger settings loaded from environment.

    Every value has a default so a missing .env never blocks order
    creation.

      - ORDER_PREFIX: prepended to generated order ids ("ORD-" -> "ORD-12")
      - DEFAULT_STATUS: status of a new order when the caller gives none;
        unknown values fall back to PENDING
      - HOME_CITY / HOME_CITY_DRIVER_FEE / DEFAULT_DRIVER_FEE: driver fee rule
      - DATABASE_URL: defaults to a private in-memory SQLite database
    """

    PROJECT_NAME: str = "Courier Ledger"
    LOG_LEVEL: str = "INFO"

    DATABASE_URL: str = "sqlite://"

    ORDER_PREFIX: str = "ORD-"
    DEFAULT_STATUS: OrderStatus = OrderStatus.PENDING

    HOME_CITY: str = "عمان"
    HOME_CITY_DRIVER_FEE: float = 1.0
    DEFAULT_DRIVER_FEE: float = 1.5

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    @field_validator("ORDER_PREFIX", mode="before")
    @classmethod
    def prefix_or_default(cls, v: str | None) -> str:
        if v is None or not str(v).strip():
            return "ORD-"
        return str(v).strip()

    @field_validator("DEFAULT_STATUS", mode="before")
    @classmethod
    def status_or_default(cls, v: object) -> OrderStatus:
        try:
            return OrderStatus(str(v).strip().upper())
        except ValueError:
            return OrderStatus.PENDING


@lru_cache
def get_settings() -> Settings:
    """
    Cached settings loader.
    Ensures we don't re-parse .env on every import.
    """
    return Settings()
