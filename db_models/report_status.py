# db_models/report_status.py
from datetime import datetime

from sqlalchemy import (
    ForeignKey,
    Index,
    Integer,
    String,
    UniqueConstraint,
    func,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from db_base import Base
from db_models.types import UTCDateTime


class ReportStatus(Base):
    __tablename__ = "teacher_report_statuses"
    __table_args__ = (
        # One row per question per teacher per cycle
        UniqueConstraint(
            "teacher_id", "cycle_id", "report_key",
            name="uq_teacher_cycle_report",
        ),
        Index("ix_report_status_teacher_cycle", "teacher_id", "cycle_id"),
        Index("ix_report_status_status_remind_at", "status", "remind_at"),
    )

    # Also the handle embedded in the Yes/No buttons
    id: Mapped[int] = mapped_column(primary_key=True, index=True)

    teacher_id: Mapped[int] = mapped_column(
        ForeignKey("teachers.id", ondelete="CASCADE"),
        nullable=False,
    )
    cycle_id: Mapped[int] = mapped_column(
        ForeignKey("notification_cycles.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    # TABLE_1 / TABLE_3 / TABLE_2
    report_key: Mapped[str] = mapped_column(
        String(100),
        nullable=False,
    )

    # PENDING_QUESTION / ANSWERED_YES / ANSWERED_NO /
    # AWAITING_REMINDER_1H / NEXT_DAY_REMINDER_SENT
    status: Mapped[str] = mapped_column(
        String(50),
        nullable=False,
    )

    last_notified_at: Mapped[datetime | None] = mapped_column(
        UTCDateTime,
        nullable=True,
    )

    # Only meaningful while status is ANSWERED_NO
    remind_at: Mapped[datetime | None] = mapped_column(
        UTCDateTime,
        nullable=True,
    )

    response_attempts: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        default=0,
        server_default="0",
    )

    created_at: Mapped[datetime] = mapped_column(
        UTCDateTime,
        nullable=False,
        server_default=func.now(),
    )
    updated_at: Mapped[datetime] = mapped_column(
        UTCDateTime,
        nullable=False,
        server_default=func.now(),
    )

    teacher: Mapped["Teacher"] = relationship(
        "Teacher",
        back_populates="report_statuses",
    )
    cycle: Mapped["NotificationCycle"] = relationship(
        "NotificationCycle",
        back_populates="report_statuses",
    )

    def __repr__(self) -> str:
        return (
            f"<ReportStatus(id={self.id}, teacher_id={self.teacher_id}, cycle_id={self.cycle_id}, "
            f"key='{self.report_key}', status='{self.status}')>"
        )
