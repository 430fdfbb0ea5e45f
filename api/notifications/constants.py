# api/notifications/constants.py
"""
Fixed enumerations of the notification workflow: cycle types, report keys
(in asking order), interaction statuses and the question texts.
"""
from enum import Enum

from core.errors import UnrecognizedError


class CycleType(str, Enum):
    MID_MONTH = "MID_MONTH"
    END_MONTH = "END_MONTH"


class ReportKey(str, Enum):
    TABLE_1 = "TABLE_1"  # lessons conducted in the current period
    TABLE_3 = "TABLE_3"  # schedule check
    TABLE_2 = "TABLE_2"  # full lesson history, end of month only


class InteractionStatus(str, Enum):
    PENDING_QUESTION = "PENDING_QUESTION"
    ANSWERED_YES = "ANSWERED_YES"
    ANSWERED_NO = "ANSWERED_NO"
    AWAITING_REMINDER_1H = "AWAITING_REMINDER_1H"
    NEXT_DAY_REMINDER_SENT = "NEXT_DAY_REMINDER_SENT"


class UnknownReportKeyError(UnrecognizedError):
    """Raised when a report key outside ReportKey reaches the workflow."""
    pass


class UnknownCycleTypeError(UnrecognizedError):
    """Raised when a cycle type outside CycleType reaches the workflow."""
    pass


# Asking order; every cycle starts with the first entry
REPORT_KEY_ORDER: tuple[ReportKey, ...] = (
    ReportKey.TABLE_1,
    ReportKey.TABLE_3,
    ReportKey.TABLE_2,
)

FIRST_REPORT_KEY = REPORT_KEY_ORDER[0]

_EXPECTED_KEYS: dict[CycleType, tuple[ReportKey, ...]] = {
    CycleType.MID_MONTH: (ReportKey.TABLE_1, ReportKey.TABLE_3),
    CycleType.END_MONTH: (ReportKey.TABLE_1, ReportKey.TABLE_3, ReportKey.TABLE_2),
}

# A "No" on a row in one of these states must not re-arm the 1-hour reminder
ESCALATED_STATUSES = frozenset({
    InteractionStatus.ANSWERED_NO,
    InteractionStatus.AWAITING_REMINDER_1H,
    InteractionStatus.NEXT_DAY_REMINDER_SENT,
})

# Rows the next-day sweep gives one last reminder to
NEXT_DAY_TARGET_STATUSES = (
    InteractionStatus.PENDING_QUESTION,
    InteractionStatus.AWAITING_REMINDER_1H,
)

QUESTION_TEXTS: dict[ReportKey, str] = {
    ReportKey.TABLE_1: "Is Table 1: Lessons conducted (report for the current period) filled in?",
    ReportKey.TABLE_3: "Is Table 3: Schedule (up to date) filled in?",
    ReportKey.TABLE_2: "Is Table 2: Lesson history (all lessons to date) filled in?",
}

YES_LABEL = "Yes"
NO_LABEL = "No"

NO_ACKNOWLEDGEMENT_TEXT = "Got it. I will remind you about this table in an hour."
FINAL_THANK_YOU_TEXT = "Thank you! All tables are confirmed."
MANAGER_COMPLETION_TEXT = (
    "{teacher_name} has confirmed all tables for the {cycle_label} cycle of {cycle_date}. "
    "Salary can be paid."
)

CYCLE_LABELS: dict[CycleType, str] = {
    CycleType.MID_MONTH: "mid-month",
    CycleType.END_MONTH: "end-of-month",
}


def parse_cycle_type(value: str) -> CycleType:
    try:
        return CycleType(value)
    except ValueError as exc:
        raise UnknownCycleTypeError(f"Unknown cycle type: {value}") from exc


def parse_report_key(value: str) -> ReportKey:
    try:
        return ReportKey(value)
    except ValueError as exc:
        raise UnknownReportKeyError(f"Unknown report key: {value}") from exc


def expected_report_keys(cycle_type: CycleType | str) -> tuple[ReportKey, ...]:
    """Report keys asked in a cycle of the given type, in asking order."""
    return _EXPECTED_KEYS[parse_cycle_type(cycle_type)]


def question_text(report_key: ReportKey | str, first_name: str) -> str:
    key = parse_report_key(report_key)
    return f"Hi, {first_name}! {QUESTION_TEXTS[key]}"
