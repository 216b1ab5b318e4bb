from __future__ import annotations

from datetime import date, datetime, timezone
from decimal import Decimal
from typing import Optional
from uuid import uuid4

import sqlalchemy as sa
from sqlalchemy import CheckConstraint, Date, DateTime, Enum, ForeignKey, Integer, Numeric, String, Text, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from marketing_assistant.db.base import Base
from marketing_assistant.db.enums import CampaignStatusEnum, ContentCategoryEnum, ScheduleStatusEnum


def _uuid_str() -> str:
    return str(uuid4())


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _enum_values(enum_cls) -> list[str]:
    return [member.value for member in enum_cls]


class User(Base):
    __tablename__ = "users"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    email: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    name: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    # AI-authored business profile paragraph; written by the onboarding tool.
    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow, server_default=func.now(), nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow, server_default=func.now(), onupdate=_utcnow, nullable=False
    )

    campaigns: Mapped[list["Campaign"]] = relationship(
        back_populates="user", cascade="all, delete-orphan", passive_deletes=True
    )
    chat_messages: Mapped[list["ChatMessage"]] = relationship(
        back_populates="user", cascade="all, delete-orphan", passive_deletes=True
    )


class Campaign(Base):
    __tablename__ = "campaigns"
    __table_args__ = (
        CheckConstraint("start_date <= end_date", name="ck_campaigns_date_range"),
        sa.Index("idx_campaigns_user_created_at", "user_id", "created_at"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid_str)
    user_id: Mapped[str] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    name: Mapped[str] = mapped_column(Text, nullable=False)
    objectives: Mapped[str] = mapped_column(Text, nullable=False)
    target_audience: Mapped[str] = mapped_column(Text, nullable=False)
    budget: Mapped[Optional[Decimal]] = mapped_column(Numeric(14, 2), nullable=True)
    start_date: Mapped[date] = mapped_column(Date, nullable=False)
    end_date: Mapped[date] = mapped_column(Date, nullable=False)
    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    status: Mapped[CampaignStatusEnum] = mapped_column(
        Enum(CampaignStatusEnum, name="campaign_status", values_callable=_enum_values),
        nullable=False,
        default=CampaignStatusEnum.draft,
        server_default=CampaignStatusEnum.draft.value,
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow, server_default=func.now(), nullable=False
    )

    user: Mapped[User] = relationship(back_populates="campaigns")
    schedule_items: Mapped[list["ScheduleItem"]] = relationship(
        back_populates="campaign", cascade="all, delete-orphan", passive_deletes=True
    )


class ScheduleItem(Base):
    __tablename__ = "schedule"
    __table_args__ = (
        sa.Index("idx_schedule_user_date", "user_id", "scheduled_date"),
        sa.Index("idx_schedule_campaign_date", "campaign_id", "scheduled_date"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid_str)
    user_id: Mapped[str] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    campaign_id: Mapped[str] = mapped_column(ForeignKey("campaigns.id", ondelete="CASCADE"), nullable=False)
    scheduled_date: Mapped[date] = mapped_column(Date, nullable=False)
    week_number: Mapped[int] = mapped_column(Integer, nullable=False)
    platform: Mapped[str] = mapped_column(Text, nullable=False)
    content_pillar: Mapped[str] = mapped_column(Text, nullable=False)
    content_category: Mapped[ContentCategoryEnum] = mapped_column(
        Enum(ContentCategoryEnum, name="content_category", values_callable=_enum_values),
        nullable=False,
    )
    content_angle: Mapped[str] = mapped_column(Text, nullable=False)
    content_brief: Mapped[str] = mapped_column(Text, nullable=False)
    status: Mapped[ScheduleStatusEnum] = mapped_column(
        Enum(ScheduleStatusEnum, name="schedule_status", values_callable=_enum_values),
        nullable=False,
        default=ScheduleStatusEnum.draft,
        server_default=ScheduleStatusEnum.draft.value,
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow, server_default=func.now(), nullable=False
    )

    campaign: Mapped[Campaign] = relationship(back_populates="schedule_items")


class ChatMessage(Base):
    __tablename__ = "chat_history"
    __table_args__ = (
        sa.Index("idx_chat_history_user_session_created", "user_id", "chat_session_id", "created_at"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid_str)
    user_id: Mapped[str] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    chat_session_id: Mapped[str] = mapped_column(String(64), nullable=False)
    # Null for system-initiated turns (welcome messages, confirmations).
    question: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    ai_response: Mapped[str] = mapped_column(Text, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow, server_default=func.now(), nullable=False
    )

    user: Mapped[User] = relationship(back_populates="chat_messages")
