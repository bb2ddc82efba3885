from sqlalchemy import Column, Boolean, DateTime, Enum as SQLEnum, ForeignKey, UniqueConstraint
from sqlalchemy.orm import relationship

from app.core.database import Base
from app.models.base import GUID, generate_uuid, utcnow
from app.models.user import PermissionName


class PermissionGrant(Base):
    """
    A capability granted to a user by an admin.

    Revoking keeps the row (is_active=False, revoked_at set) so the audit log
    shows who held what and when; granting again reactivates it.
    """
    __tablename__ = "permission_grants"
    __table_args__ = (
        UniqueConstraint("user_id", "permission", name="uq_permission_grant_user_permission"),
    )

    id = Column(GUID, primary_key=True, default=generate_uuid)
    user_id = Column(GUID, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    school_id = Column(GUID, ForeignKey("schools.id", ondelete="CASCADE"), nullable=False, index=True)
    permission = Column(SQLEnum(PermissionName), nullable=False)

    granted_by_id = Column(GUID, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    granted_at = Column(DateTime, default=utcnow, nullable=False)
    revoked_at = Column(DateTime, nullable=True)
    is_active = Column(Boolean, default=True, nullable=False)

    user = relationship("User", foreign_keys=[user_id], back_populates="permission_grants")

    def __repr__(self):
        return f"<PermissionGrant {self.permission.value} active={self.is_active}>"
