# courier_ledger/models/status.py
from enum import Enum
from typing import Callable, NamedTuple


class OrderStatus(str, Enum):
    """
    Closed set of order lifecycle states.

    Member names equal their values so the SQL enum column stores the
    same token that callers pass around.
    """

    PENDING = "PENDING"
    OUT_FOR_DELIVERY = "OUT_FOR_DELIVERY"
    DELIVERED = "DELIVERED"
    POSTPONED = "POSTPONED"
    RETURNED = "RETURNED"
    CANCELLED = "CANCELLED"
    MONEY_RECEIVED = "MONEY_RECEIVED"  # cash collected at branch
    COMPLETED = "COMPLETED"
    EXCHANGE = "EXCHANGE"
    REFUSED_PAID = "REFUSED_PAID"
    REFUSED_UNPAID = "REFUSED_UNPAID"
    BRANCH_RETURNED = "BRANCH_RETURNED"
    MERCHANT_RETURNED = "MERCHANT_RETURNED"
    ARCHIVED = "ARCHIVED"
    NO_ANSWER = "NO_ANSWER"
    ARRIVAL_NO_ANSWER = "ARRIVAL_NO_ANSWER"


class MerchantSlipStatus(str, Enum):
    READY_FOR_DELIVERY = "READY_FOR_DELIVERY"
    DELIVERED = "DELIVERED"


class PaymentSlipStatus(str, Enum):
    READY = "READY"
    PAID = "PAID"


class StatusTraits(NamedTuple):
    """
    Eligibility flags for one status.

      - collectible: COD is believed to be in the driver's hand
      - returnable: merchandise travels back towards the merchant
      - open: order is still in flight (not terminal)
      - driver_assignable: a driver may be (re)assigned
    """

    collectible: bool = False
    returnable: bool = False
    open: bool = False
    driver_assignable: bool = False


# Every OrderStatus member must have an entry here.
STATUS_TRAITS: dict[OrderStatus, StatusTraits] = {
    OrderStatus.PENDING: StatusTraits(open=True, driver_assignable=True),
    OrderStatus.OUT_FOR_DELIVERY: StatusTraits(open=True),
    OrderStatus.DELIVERED: StatusTraits(collectible=True),
    OrderStatus.POSTPONED: StatusTraits(open=True),
    OrderStatus.RETURNED: StatusTraits(returnable=True),
    OrderStatus.CANCELLED: StatusTraits(returnable=True),
    OrderStatus.MONEY_RECEIVED: StatusTraits(driver_assignable=True),
    OrderStatus.COMPLETED: StatusTraits(),
    OrderStatus.EXCHANGE: StatusTraits(collectible=True, returnable=True),
    OrderStatus.REFUSED_PAID: StatusTraits(collectible=True, returnable=True),
    OrderStatus.REFUSED_UNPAID: StatusTraits(collectible=True, returnable=True),
    OrderStatus.BRANCH_RETURNED: StatusTraits(),
    OrderStatus.MERCHANT_RETURNED: StatusTraits(),
    OrderStatus.ARCHIVED: StatusTraits(),
    OrderStatus.NO_ANSWER: StatusTraits(open=True),
    OrderStatus.ARRIVAL_NO_ANSWER: StatusTraits(collectible=True),
}

_missing = set(OrderStatus) - set(STATUS_TRAITS)
if _missing:
    raise RuntimeError(f"Status traits missing for: {sorted(s.value for s in _missing)}")

# Status an order moves to once its cash is handed to the branch.
SETTLED_STATUS = OrderStatus.MONEY_RECEIVED

# Status an order moves to once the branch physically holds the return.
BRANCH_STATUS = OrderStatus.BRANCH_RETURNED


def traits_for(status: OrderStatus) -> StatusTraits:
    return STATUS_TRAITS[OrderStatus(status)]


def is_collectible(status: OrderStatus) -> bool:
    return traits_for(status).collectible


def is_returnable(status: OrderStatus) -> bool:
    return traits_for(status).returnable


def is_held_for_return(status: OrderStatus) -> bool:
    """
    Returnable statuses plus POSTPONED: the driver still carries the parcel.
    """
    return is_returnable(status) or OrderStatus(status) == OrderStatus.POSTPONED


def is_awaiting_packaging(status: OrderStatus) -> bool:
    """
    Returnable statuses plus BRANCH_RETURNED: eligible for a merchant slip.
    """
    return is_returnable(status) or OrderStatus(status) == BRANCH_STATUS


def is_open(status: OrderStatus) -> bool:
    return traits_for(status).open


def is_driver_assignable(status: OrderStatus) -> bool:
    return traits_for(status).driver_assignable


def statuses_matching(predicate: Callable[[OrderStatus], bool]) -> list[OrderStatus]:
    """
    Expand a predicate into the list of statuses it accepts (for SQL IN clauses).
    """
    return [s for s in OrderStatus if predicate(s)]


def parse_status(value: "OrderStatus | str") -> OrderStatus:
    """
    Accept an OrderStatus or its string token; raise ValueError otherwise.
    """
    if isinstance(value, OrderStatus):
        return value
    return OrderStatus(str(value).strip().upper())
