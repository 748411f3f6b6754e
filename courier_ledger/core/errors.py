# courier_ledger/core/errors.py
from typing import Any


class LedgerError(Exception):
    """
    Base error for ledger operations.

    Attributes:
        detail: human readable reason
        context: structured data about the failure (ids, merchants, ...)
    """

    def __init__(self, detail: str, **context: Any):
        super().__init__(detail)
        self.detail = detail
        self.context = context

    def __str__(self) -> str:
        return self.detail


class LedgerValidationError(LedgerError):
    """
    Operation rejected before any mutation (empty selection, cross-merchant
    slip, ineligible orders, unknown field, duplicate import ids).
    """
