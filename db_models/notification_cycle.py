# db_models/notification_cycle.py
from datetime import date, datetime

from sqlalchemy import Date, String, UniqueConstraint, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from db_base import Base
from db_models.types import UTCDateTime


class NotificationCycle(Base):
    """One scheduled notification run, keyed by (cycle_date, cycle_type)."""

    __tablename__ = "notification_cycles"
    __table_args__ = (
        UniqueConstraint("cycle_date", "cycle_type", name="uq_cycle_date_type"),
    )

    id: Mapped[int] = mapped_column(primary_key=True, index=True)

    cycle_date: Mapped[date] = mapped_column(
        Date,
        nullable=False,
    )

    # MID_MONTH / END_MONTH
    cycle_type: Mapped[str] = mapped_column(
        String(50),
        nullable=False,
    )

    # Immutable after creation, so no updated_at
    created_at: Mapped[datetime] = mapped_column(
        UTCDateTime,
        nullable=False,
        server_default=func.now(),
    )

    report_statuses: Mapped[list["ReportStatus"]] = relationship(
        "ReportStatus",
        back_populates="cycle",
        cascade="all, delete-orphan",
    )

    def __repr__(self) -> str:
        return f"<NotificationCycle(id={self.id}, date={self.cycle_date}, type='{self.cycle_type}')>"
