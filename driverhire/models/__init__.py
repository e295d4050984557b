from driverhire.models.audit_log import AuditLog
from driverhire.models.booking import Booking
from driverhire.models.driver_profile import DriverProfile
from driverhire.models.notification import Notification
from driverhire.models.payment import Payment
from driverhire.models.review import Review
from driverhire.models.tracking import TrackingPoint
from driverhire.models.user import User

__all__ = [
    "AuditLog",
    "User",
    "DriverProfile",
    "Booking",
    "Payment",
    "Review",
    "Notification",
    "TrackingPoint",
]
