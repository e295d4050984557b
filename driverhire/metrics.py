"""Prometheus counters for the booking and payment lifecycle."""

from prometheus_client import Counter

BOOKINGS_CREATED = Counter(
    "driverhire_bookings_created_total",
    "Total bookings created",
    ["service_kind"],
)
BOOKING_TRANSITIONS = Counter(
    "driverhire_booking_transitions_total",
    "Total booking status transitions",
    ["status"],
)
BOOKING_CONFLICTS = Counter(
    "driverhire_booking_conflicts_total",
    "Booking attempts rejected because the driver was already booked",
)

PAYMENTS_SUBMITTED = Counter(
    "driverhire_payments_submitted_total",
    "Total payments submitted",
    ["method"],
)
PAYMENT_DECISIONS = Counter(
    "driverhire_payment_decisions_total",
    "Total payment verification decisions",
    ["decision"],
)

REVIEWS_CREATED = Counter(
    "driverhire_reviews_created_total",
    "Total reviews created",
)
