from waste_reminder.models.user import User
from waste_reminder.models.address import Address, City, Street
from waste_reminder.models.notification_preference import NotificationPreference, NotificationType
from waste_reminder.models.waste_schedule import WasteSchedule, WasteType
from waste_reminder.models.notification_log import NotificationLog, NotificationStatus

__all__ = [
    "User",
    "Address",
    "City",
    "Street",
    "NotificationPreference",
    "NotificationType",
    "WasteSchedule",
    "WasteType",
    "NotificationLog",
    "NotificationStatus",
]
