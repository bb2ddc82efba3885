from sqlalchemy import Column, Integer, DateTime, CheckConstraint

from app.core.database import Base
from app.models.base import GUID, generate_uuid, TimestampMixin


class DueDateConfig(Base, TimestampMixin):
    """
    Singleton row: the day of the month on which a new pending fee/salary
    entry is added for everyone. `last_applied` stops a second run in the
    same month.
    """
    __tablename__ = "due_date_config"
    __table_args__ = (
        CheckConstraint("day_of_month >= 1 AND day_of_month <= 31", name="ck_due_date_day_of_month"),
    )

    id = Column(GUID, primary_key=True, default=generate_uuid)
    day_of_month = Column(Integer, default=1, nullable=False)
    last_applied = Column(DateTime, nullable=True)
