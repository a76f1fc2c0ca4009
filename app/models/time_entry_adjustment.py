from datetime import datetime

from sqlalchemy import Column, DateTime, ForeignKey, Integer, String, Text

from app.database import Base


class TimeEntryAdjustment(Base):
    """Append-only audit row written before a manual edit overwrites approved times."""

    __tablename__ = "time_entry_adjustments"

    id = Column(Integer, primary_key=True, autoincrement=True)
    company_id = Column(Integer, nullable=False, index=True)
    time_entry_id = Column(
        String,
        ForeignKey("time_entries.time_entry_id", ondelete="RESTRICT"),
        nullable=False,
        index=True,
    )

    original_clock_in = Column(DateTime, nullable=True)
    original_clock_out = Column(DateTime, nullable=True)
    new_clock_in = Column(DateTime, nullable=False)
    new_clock_out = Column(DateTime, nullable=False)

    reason = Column(Text, nullable=False)
    adjusted_by = Column(String, nullable=False)
    adjusted_at = Column(DateTime, nullable=False, default=datetime.utcnow)
