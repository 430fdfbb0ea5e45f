from db_models.teacher import Teacher
from db_models.notification_cycle import NotificationCycle
from db_models.report_status import ReportStatus

__all__ = [
    "Teacher",
    "NotificationCycle",
    "ReportStatus",
]
