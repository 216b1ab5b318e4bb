from typing import Dict, List, Optional

from sqlalchemy import func, or_, select

from marketing_assistant.db.models import Campaign, ScheduleItem
from marketing_assistant.db.repositories.base import Repository


class CampaignsRepository(Repository):
    def list(
        self,
        user_id: str,
        search: Optional[str] = None,
        limit: int = 50,
        offset: int = 0,
    ) -> List[Campaign]:
        stmt = select(Campaign).where(Campaign.user_id == user_id)
        if search:
            pattern = f"%{search.strip().lower()}%"
            stmt = stmt.where(
                or_(func.lower(Campaign.name).like(pattern), func.lower(Campaign.objectives).like(pattern))
            )
        stmt = stmt.order_by(Campaign.created_at.desc()).limit(limit).offset(offset)
        with self._store_errors("list campaigns"):
            return list(self.session.scalars(stmt).all())

    def get(self, user_id: str, campaign_id: str) -> Optional[Campaign]:
        stmt = select(Campaign).where(Campaign.user_id == user_id, Campaign.id == campaign_id)
        with self._store_errors("load campaign"):
            return self.session.scalars(stmt).first()

    def create(self, user_id: str, name: str, **fields) -> Campaign:
        campaign = Campaign(user_id=user_id, name=name, **fields)
        return self.save(campaign, operation="create campaign")

    def schedule_counts(self, user_id: str, campaign_ids: List[str]) -> Dict[str, int]:
        if not campaign_ids:
            return {}
        stmt = (
            select(ScheduleItem.campaign_id, func.count(ScheduleItem.id))
            .where(ScheduleItem.user_id == user_id, ScheduleItem.campaign_id.in_(campaign_ids))
            .group_by(ScheduleItem.campaign_id)
        )
        with self._store_errors("count schedule items"):
            rows = self.session.execute(stmt).all()
        return {campaign_id: count for campaign_id, count in rows}
