"""
Fee and salary bookkeeping.

The monthly reset adds a pending entry for every active student (fee)
and staff member (salary) on the configured day of the month. The
configuration is a single row shared by all schools.
"""

from datetime import date, datetime
from typing import Dict, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import ValidationError
from app.core.logging_config import logger
from app.models.base import utcnow
from app.models.due_date_config import DueDateConfig
from app.models.user import User, UserRole, PaymentRecord, PaymentKind, PaymentStatus, STAFF_ROLES


async def get_config(db: AsyncSession) -> DueDateConfig:
    """Fetch the due date config, creating the default row on first use"""
    result = await db.execute(select(DueDateConfig).order_by(DueDateConfig.created_at.asc()).limit(1))
    config = result.scalar_one_or_none()
    if config is None:
        config = DueDateConfig(day_of_month=1)
        db.add(config)
        await db.flush()
        logger.info("[Payments] Created default due date config (day 1)")
    return config


async def set_due_day(db: AsyncSession, day_of_month: int) -> DueDateConfig:
    if not 1 <= day_of_month <= 31:
        raise ValidationError("Day of month must be between 1 and 31", field="day_of_month")
    config = await get_config(db)
    config.day_of_month = day_of_month
    await db.flush()
    logger.info(f"[Payments] Due day set to {day_of_month}")
    return config


def already_applied(config: DueDateConfig, today: date) -> bool:
    last = config.last_applied
    return last is not None and last.year == today.year and last.month == today.month


async def apply_monthly_reset(
    db: AsyncSession,
    today: Optional[date] = None,
    force: bool = False,
    now: Optional[datetime] = None,
) -> Dict[str, int]:
    """
    Add pending fee/salary entries when today is the due day.

    Without `force` this is a no-op on other days and on a second run in the
    same month. Returns counts per role and whether anything was applied.
    """
    now = now or utcnow()
    today = today or now.date()
    config = await get_config(db)

    if not force:
        if today.day != config.day_of_month:
            return {"applied": 0}
        if already_applied(config, today):
            logger.info("[Payments] Already reset payments this month")
            return {"applied": 0}

    result = await db.execute(
        select(User).where(
            User.is_active == True,  # noqa: E712
            User.role.in_((UserRole.STUDENT,) + STAFF_ROLES),
        )
    )
    counts = {role.value: 0 for role in (UserRole.STUDENT,) + STAFF_ROLES}

    for user in result.scalars().all():
        if user.role == UserRole.STUDENT:
            kind, amount = PaymentKind.FEE, user.fee_amount or 0.0
        else:
            kind, amount = PaymentKind.SALARY, user.salary_amount or 0.0
        db.add(PaymentRecord(
            user_id=user.id,
            school_id=user.school_id,
            kind=kind,
            amount=amount,
            status=PaymentStatus.PENDING,
            recorded_at=now,
        ))
        counts[user.role.value] += 1

    config.last_applied = now
    await db.flush()

    logger.log_job_event("payment_reset", "applied", affected=sum(counts.values()), **counts)
    return {"applied": 1, **counts}


async def record_payment(
    db: AsyncSession,
    user: User,
    kind: PaymentKind,
    amount: float,
    status: PaymentStatus = PaymentStatus.PAID,
    note: Optional[str] = None,
    paid_by: Optional[User] = None,
) -> PaymentRecord:
    """Append a fee (students) or salary (staff) entry"""
    if kind == PaymentKind.FEE and user.role != UserRole.STUDENT:
        raise ValidationError("Fees can only be recorded for students")
    if kind == PaymentKind.SALARY and user.role not in STAFF_ROLES:
        raise ValidationError("Salary can only be recorded for teachers, faculty and admins")

    record = PaymentRecord(
        user_id=user.id,
        school_id=user.school_id,
        kind=kind,
        amount=amount,
        status=status,
        note=note,
        paid_by_id=paid_by.id if paid_by else None,
    )
    db.add(record)
    await db.flush()
    logger.info(f"[Payments] {kind.value} {status.value} {amount} recorded for user {user.user_number}")
    return record


async def payment_history(db: AsyncSession, user_id: str):
    result = await db.execute(
        select(PaymentRecord)
        .where(PaymentRecord.user_id == user_id)
        .order_by(PaymentRecord.recorded_at.desc())
    )
    return list(result.scalars().all())
