"""Internal notification endpoints: per-user delivery diagnosis and a manual matcher run."""

from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession

from waste_reminder.api.deps import require_admin
from waste_reminder.db.session import async_session_maker, get_db
from waste_reminder.services.diagnostics import NotificationDiagnosis, diagnose_user
from waste_reminder.services.matcher import run_matcher
from waste_reminder.services.notification_queue import get_notification_queue

router = APIRouter(
    prefix="/internal/notifications",
    tags=["internal"],
    dependencies=[Depends(require_admin)],
)


@router.get(
    "/diagnose/{user_id}",
    summary="Explain why a user does or does not get SMS reminders",
    response_model=NotificationDiagnosis,
    responses={401: {"description": "Invalid admin token"}, 404: {"description": "User not found"}},
)
async def diagnose_notifications(
    user_id: int,
    session: Annotated[AsyncSession, Depends(get_db)],
) -> NotificationDiagnosis:
    diagnosis = await diagnose_user(session, user_id)
    if diagnosis is None:
        raise HTTPException(status_code=404, detail="User not found")
    return diagnosis


@router.post(
    "/run-matcher",
    summary="Run the matcher for the current slot now",
    responses={401: {"description": "Invalid admin token"}},
)
async def trigger_matcher() -> dict:
    """Same as one cron tick; duplicates of already-sent jobs are dropped by the delivery worker."""
    queued = await run_matcher(async_session_maker, get_notification_queue())
    return {"queued": queued}
