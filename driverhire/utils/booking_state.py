from driverhire.errors import InvalidTransition
from driverhire.models.enums import BookingStatus

# Defines all valid status transitions for a booking
ALLOWED_TRANSITIONS: dict[BookingStatus, set[BookingStatus]] = {
    BookingStatus.PENDING: {
        BookingStatus.CONFIRMED,
        BookingStatus.CANCELLED,
    },
    BookingStatus.CONFIRMED: {
        BookingStatus.ONGOING,
        BookingStatus.CANCELLED,
    },
    BookingStatus.ONGOING: {
        BookingStatus.COMPLETED,
        BookingStatus.CANCELLED,
    },
    BookingStatus.COMPLETED: set(),  # Terminal state
    BookingStatus.CANCELLED: set(),  # Terminal state
}

# Statuses that hold the driver's calendar
ACTIVE_STATUSES: tuple[BookingStatus, ...] = (
    BookingStatus.PENDING,
    BookingStatus.CONFIRMED,
    BookingStatus.ONGOING,
)

# Statuses from which the customer may cancel
CUSTOMER_CANCELLABLE: frozenset[BookingStatus] = frozenset(
    {BookingStatus.PENDING, BookingStatus.CONFIRMED}
)


def is_terminal(current: BookingStatus | str) -> bool:
    return not ALLOWED_TRANSITIONS[BookingStatus(current)]


def validate_transition(current: BookingStatus | str, new: BookingStatus | str) -> None:
    """Validate a booking status transition. Raises InvalidTransition (409) if invalid."""
    # Values loaded from VARCHAR columns come back as plain str.
    current = BookingStatus(current)
    new = BookingStatus(new)
    allowed = ALLOWED_TRANSITIONS.get(current, set())
    if new not in allowed:
        raise InvalidTransition(
            f"Cannot transition from '{current.value}' to '{new.value}'"
        )
