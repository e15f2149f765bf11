from enum import Enum


class ListingCategory(str, Enum):
    SALE = "sale"
    RENT = "rent"


class VehicleType(str, Enum):
    CAR = "car"
    BIKE = "bike"


class FuelType(str, Enum):
    PETROL = "petrol"
    DIESEL = "diesel"
    ELECTRIC = "electric"
    HYBRID = "hybrid"


class VehicleCondition(str, Enum):
    EXCELLENT = "excellent"
    GOOD = "good"
    FAIR = "fair"
    NEEDS_REPAIR = "needs-repair"


class SaleStatus(str, Enum):
    """Moderation states of a vehicle listed for sale."""

    PENDING = "pending"
    ACTIVE = "active"
    SOLD = "sold"
    REJECTED = "rejected"


class RentStatus(str, Enum):
    """Moderation states of a vehicle listed for rent."""

    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class PaymentStatus(str, Enum):
    PENDING = "pending"
    PAID = "paid"


class Availability(str, Enum):
    AVAILABLE = "available"
    RENTED = "rented"


class UpdateRequestStatus(str, Enum):
    IN_REVIEW = "in-review"
    APPROVED = "approved"
    REJECTED = "rejected"

    @property
    def is_terminal(self) -> bool:
        return self is not UpdateRequestStatus.IN_REVIEW


class UpdateRequestAction(str, Enum):
    APPROVE = "approve"
    REJECT = "reject"


class TransactionStatus(str, Enum):
    INITIATED = "initiated"
    SUCCESS = "success"
    FAILED = "failed"
    CANCELLED = "cancelled"

    @property
    def is_terminal(self) -> bool:
        """A transaction leaves INITIATED exactly once."""
        return self is not TransactionStatus.INITIATED


class Role(str, Enum):
    USER = "user"
    ADMIN = "admin"
