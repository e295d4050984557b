import enum

# These enums are stored as VARCHAR columns. Values read back from the
# database are plain strings, so normalise with e.g. ``BookingStatus(value)``
# before using them as dict keys.


class UserRole(str, enum.Enum):
    CUSTOMER = "customer"
    DRIVER = "driver"
    ADMIN = "admin"


class ServiceKind(str, enum.Enum):
    TRANSPORT = "transport"
    GOODS_DELIVERY = "goods_delivery"
    TOUR = "tour"


class BookingStatus(str, enum.Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    ONGOING = "ongoing"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class BookingPaymentStatus(str, enum.Enum):
    UNPAID = "unpaid"
    DP_PAID = "dp_paid"
    PAID = "paid"


class PaymentKind(str, enum.Enum):
    DEPOSIT = "deposit"
    FULL = "full"
    SETTLEMENT = "settlement"


class PaymentMethod(str, enum.Enum):
    TRANSFER = "transfer"
    CASH = "cash"
    E_WALLET = "e-wallet"


class PaymentStatus(str, enum.Enum):
    PENDING = "pending"
    VERIFIED = "verified"
    REJECTED = "rejected"


class DriverVerificationStatus(str, enum.Enum):
    PENDING = "pending"
    VERIFIED = "verified"
    REJECTED = "rejected"


class CancelledBy(str, enum.Enum):
    CUSTOMER = "customer"
    DRIVER = "driver"
    ADMIN = "admin"


class TrackingStage(str, enum.Enum):
    ON_WAY_PICKUP = "on_way_pickup"
    PICKED_UP = "picked_up"
    ON_WAY_DESTINATION = "on_way_destination"
    ARRIVED = "arrived"


class NotificationType(str, enum.Enum):
    BOOKING_CREATED = "booking_created"
    BOOKING_UPDATED = "booking_updated"
    BOOKING_CANCELLED = "booking_cancelled"
    PAYMENT_RECEIVED = "payment_received"
    PAYMENT_VERIFIED = "payment_verified"
    PAYMENT_REJECTED = "payment_rejected"
    REVIEW_RECEIVED = "review_received"
    DRIVER_VERIFICATION = "driver_verification"
