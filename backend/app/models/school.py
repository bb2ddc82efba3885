from sqlalchemy import Column, String, Integer, Text
from sqlalchemy.orm import relationship

from app.core.database import Base
from app.models.base import GUID, generate_uuid, TimestampMixin


DEFAULT_THEME_COLOR = "#3b82f6"


class School(Base, TimestampMixin):
    """A tenant. Every other record hangs off exactly one school."""
    __tablename__ = "schools"

    id = Column(GUID, primary_key=True, default=generate_uuid)
    name = Column(String(100), unique=True, index=True, nullable=False)
    display_name = Column(String(255), nullable=True)
    address = Column(Text, nullable=True)
    phone = Column(String(20), nullable=True)
    email = Column(String(255), nullable=True)
    website = Column(String(255), nullable=True)
    logo_url = Column(String(500), nullable=True)
    theme_color = Column(String(20), default=DEFAULT_THEME_COLOR, nullable=False)
    description = Column(Text, nullable=True)
    established_year = Column(Integer, nullable=True)

    # No FK: the founding admin is created in the same transaction as the school
    created_by_id = Column(GUID, nullable=True)

    users = relationship("User", back_populates="school", cascade="all, delete-orphan", passive_deletes=True)

    def __repr__(self):
        return f"<School {self.name}>"
