from marketing_assistant.db.repositories.users import UsersRepository
from marketing_assistant.db.repositories.campaigns import CampaignsRepository
from marketing_assistant.db.repositories.schedule import ScheduleRepository
from marketing_assistant.db.repositories.chat_messages import ChatMessagesRepository

__all__ = [
    "UsersRepository",
    "CampaignsRepository",
    "ScheduleRepository",
    "ChatMessagesRepository",
]
