"""TrackMate — Per-tenant sequence counters."""
from sqlalchemy import ForeignKey, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from trackmate.db.base import Base


class SequenceCounter(Base):
    """Last number handed out for one (company, series). Only ever incremented in SQL."""

    __tablename__ = "sequence_counters"

    company_id: Mapped[int] = mapped_column(Integer, ForeignKey("companies.id", ondelete="CASCADE"), primary_key=True)
    series: Mapped[str] = mapped_column(String(20), primary_key=True)
    last_value: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
