from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from marketing_assistant.agent.tools import campaign_payload, schedule_item_payload
from marketing_assistant.db.deps import get_session
from marketing_assistant.db.repositories import CampaignsRepository, ScheduleRepository, UsersRepository

router = APIRouter(prefix="/api", tags=["campaigns"])


def _require_user(session: Session, user_id: str) -> None:
    if UsersRepository(session).get(user_id) is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")


@router.get("/campaigns/{user_id}")
def list_campaigns(
    user_id: str,
    search: Optional[str] = None,
    session: Session = Depends(get_session),
) -> dict:
    _require_user(session, user_id)
    repo = CampaignsRepository(session)
    campaigns = repo.list(user_id, search=search)
    counts = repo.schedule_counts(user_id, [campaign.id for campaign in campaigns])
    return {
        "success": True,
        "campaigns": [campaign_payload(campaign, counts.get(campaign.id, 0)) for campaign in campaigns],
    }


@router.get("/schedule/{user_id}")
def list_schedule(
    user_id: str,
    campaign_id: Optional[str] = None,
    session: Session = Depends(get_session),
) -> dict:
    _require_user(session, user_id)
    if campaign_id and CampaignsRepository(session).get(user_id, campaign_id) is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Campaign not found")
    items = ScheduleRepository(session).list(user_id, campaign_id=campaign_id)
    return {"success": True, "schedule": [schedule_item_payload(item) for item in items]}
