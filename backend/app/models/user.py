from sqlalchemy import Column, String, Boolean, DateTime, Enum as SQLEnum, Integer, Float, ForeignKey, Text
from sqlalchemy.orm import relationship
import enum

from app.core.database import Base
from app.models.base import GUID, generate_uuid, utcnow, TimestampMixin


class UserRole(str, enum.Enum):
    """User roles"""
    STUDENT = "student"
    TEACHER = "teacher"
    PARENT = "parent"
    FACULTY = "faculty"
    ADMIN = "admin"


# Roles that draw a salary and receive payroll entries
STAFF_ROLES = (UserRole.TEACHER, UserRole.FACULTY, UserRole.ADMIN)


class PermissionName(str, enum.Enum):
    """Capabilities an admin can grant on top of a role"""
    STUDENT_AFFAIRS = "student_affairs"
    ACCOUNTS_OFFICE = "accounts_office"


PERMISSION_DESCRIPTIONS = {
    PermissionName.STUDENT_AFFAIRS: "Manage students, sections, courses and timetables",
    PermissionName.ACCOUNTS_OFFICE: "Record fee and salary payments and manage due dates",
}


class User(Base, TimestampMixin):
    """User model - one row per person, role decides the dashboard"""
    __tablename__ = "users"

    id = Column(GUID, primary_key=True, default=generate_uuid)
    user_number = Column(Integer, unique=True, index=True, nullable=False)
    name = Column(String(255), nullable=False)
    email = Column(String(255), unique=True, index=True, nullable=False)
    hashed_password = Column(String(255), nullable=False)
    phone = Column(String(20), nullable=True)

    role = Column(SQLEnum(UserRole), default=UserRole.STUDENT, nullable=False, index=True)
    is_active = Column(Boolean, default=True, nullable=False)

    school_id = Column(GUID, ForeignKey("schools.id", ondelete="CASCADE"), nullable=False, index=True)
    created_by_id = Column(GUID, nullable=True)

    # Role profile fields
    fee_amount = Column(Float, default=0.0, nullable=False)  # students
    salary_amount = Column(Float, default=0.0, nullable=False)  # staff
    designation = Column(String(100), nullable=True)

    last_login = Column(DateTime, nullable=True)

    # Relationships
    school = relationship("School", back_populates="users")
    permission_grants = relationship(
        "PermissionGrant",
        foreign_keys="PermissionGrant.user_id",
        back_populates="user",
        cascade="all, delete-orphan",
        lazy="selectin",
    )
    payments = relationship(
        "PaymentRecord",
        foreign_keys="PaymentRecord.user_id",
        back_populates="user",
        cascade="all, delete-orphan",
        passive_deletes=True,
        order_by="PaymentRecord.recorded_at.desc()",
    )

    @property
    def permissions(self):
        return sorted(g.permission.value for g in self.permission_grants if g.is_active)

    def has_permission(self, permission: PermissionName) -> bool:
        return any(g.is_active and g.permission == permission for g in self.permission_grants)

    @property
    def is_admin(self) -> bool:
        return self.role == UserRole.ADMIN

    @property
    def is_staff(self) -> bool:
        return self.role in STAFF_ROLES

    def __repr__(self):
        return f"<User {self.user_number} {self.email}>"


class PaymentKind(str, enum.Enum):
    FEE = "fee"
    SALARY = "salary"


class PaymentStatus(str, enum.Enum):
    PAID = "paid"
    PENDING = "pending"


class PaymentRecord(Base):
    """Fee (students) or salary (staff) history entry"""
    __tablename__ = "payment_records"

    id = Column(GUID, primary_key=True, default=generate_uuid)
    user_id = Column(GUID, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    school_id = Column(GUID, ForeignKey("schools.id", ondelete="CASCADE"), nullable=False, index=True)

    kind = Column(SQLEnum(PaymentKind), nullable=False)
    amount = Column(Float, nullable=False)
    status = Column(SQLEnum(PaymentStatus), default=PaymentStatus.PENDING, nullable=False)
    note = Column(Text, nullable=True)

    recorded_at = Column(DateTime, default=utcnow, nullable=False, index=True)
    paid_by_id = Column(GUID, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)

    user = relationship("User", foreign_keys=[user_id], back_populates="payments")

    def __repr__(self):
        return f"<PaymentRecord {self.kind.value} {self.amount} {self.status.value}>"
