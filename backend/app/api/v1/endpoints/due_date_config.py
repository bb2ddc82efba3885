"""
Due Date Config API

The day of the month on which pending fee and salary entries are added,
plus a manual trigger for the reset.
"""
from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.database import get_db
from app.core.logging_config import logger
from app.models.user import User
from app.modules.auth.dependencies import get_current_user, require_accounts_office
from app.schemas.user import DueDateConfigUpdate, DueDateConfigResponse
from app.services import payment_service
from app.api.v1.responses import success

router = APIRouter()


@router.get("")
async def get_due_date_config(
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    config = await payment_service.get_config(db)
    await db.commit()
    return success(DueDateConfigResponse.model_validate(config))


@router.post("")
async def set_due_date_config(
    payload: DueDateConfigUpdate,
    current_user: User = Depends(require_accounts_office),
    db: AsyncSession = Depends(get_db)
):
    config = await payment_service.set_due_day(db, payload.day_of_month)
    await db.commit()
    return success(DueDateConfigResponse.model_validate(config), "Due date updated successfully")


@router.post("/reset-now")
async def reset_now(
    current_user: User = Depends(require_accounts_office),
    db: AsyncSession = Depends(get_db)
):
    """Add this month's pending entries immediately, whatever the day"""
    result = await payment_service.apply_monthly_reset(db, force=True)
    await db.commit()

    logger.info(f"[Payments] Manual reset by {current_user.user_number}: {result}")
    return success(result, "Payment reset applied")
