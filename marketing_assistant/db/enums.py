from enum import Enum


class CampaignStatusEnum(str, Enum):
    draft = "draft"
    active = "active"
    completed = "completed"


class ScheduleStatusEnum(str, Enum):
    draft = "draft"
    approved = "approved"
    published = "published"


class ContentCategoryEnum(str, Enum):
    organic = "Organic Post"
    promotional = "Promotional Post"
