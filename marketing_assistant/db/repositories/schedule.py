from typing import Iterable, List, Optional

from sqlalchemy import select

from marketing_assistant.db.models import ScheduleItem
from marketing_assistant.db.repositories.base import Repository


class ScheduleRepository(Repository):
    def list(self, user_id: str, campaign_id: Optional[str] = None) -> List[ScheduleItem]:
        stmt = select(ScheduleItem).where(ScheduleItem.user_id == user_id)
        if campaign_id:
            stmt = stmt.where(ScheduleItem.campaign_id == campaign_id)
        stmt = stmt.order_by(ScheduleItem.scheduled_date.asc(), ScheduleItem.platform.asc())
        with self._store_errors("list schedule items"):
            return list(self.session.scalars(stmt).all())

    def bulk_create(self, user_id: str, campaign_id: str, rows: Iterable[dict]) -> List[ScheduleItem]:
        """Insert every row in one transaction; nothing is kept if the commit fails."""
        items = [ScheduleItem(user_id=user_id, campaign_id=campaign_id, **row) for row in rows]
        self.session.add_all(items)
        self._commit("create schedule items")
        return items
