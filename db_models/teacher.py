# db_models/teacher.py
"""
Teacher roster entry. Teachers are the participants asked to confirm their
reports each cycle; deactivation is a soft delete via is_active.
"""
from datetime import datetime

from sqlalchemy import BigInteger, Boolean, String, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from db_base import Base
from db_models.types import UTCDateTime


class Teacher(Base):
    __tablename__ = "teachers"

    id: Mapped[int] = mapped_column(primary_key=True, index=True)

    # Telegram user id; also the private chat id used for messages
    telegram_id: Mapped[int] = mapped_column(
        BigInteger,
        unique=True,
        index=True,
        nullable=False,
    )

    first_name: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
    )
    last_name: Mapped[str | None] = mapped_column(
        String(255),
        nullable=True,
    )

    is_active: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        default=True,
        server_default="true",
        index=True,
    )

    created_at: Mapped[datetime] = mapped_column(
        UTCDateTime,
        nullable=False,
        server_default=func.now(),
    )
    updated_at: Mapped[datetime | None] = mapped_column(
        UTCDateTime,
        nullable=True,
        onupdate=func.now(),
    )

    report_statuses: Mapped[list["ReportStatus"]] = relationship(
        "ReportStatus",
        back_populates="teacher",
        cascade="all, delete-orphan",
    )

    @property
    def display_name(self) -> str:
        if self.last_name:
            return f"{self.first_name} {self.last_name}"
        return self.first_name

    def __repr__(self) -> str:
        return f"<Teacher(id={self.id}, telegram_id={self.telegram_id}, active={self.is_active})>"
