from __future__ import annotations

from collections.abc import Sequence
from typing import Optional

from sqlalchemy import delete, func, select

from marketing_assistant.db.models import ChatMessage
from marketing_assistant.db.repositories.base import Repository


class ChatMessagesRepository(Repository):
    def append(
        self,
        *,
        user_id: str,
        session_id: str,
        question: Optional[str],
        ai_response: str,
    ) -> ChatMessage:
        message = ChatMessage(
            user_id=user_id,
            chat_session_id=session_id,
            question=question,
            ai_response=ai_response,
        )
        return self.save(message, operation="append chat message")

    def recent(self, *, user_id: str, session_id: Optional[str], limit: int) -> list[ChatMessage]:
        """Newest `limit` rows, returned oldest first."""
        stmt = select(ChatMessage).where(ChatMessage.user_id == user_id)
        if session_id:
            stmt = stmt.where(ChatMessage.chat_session_id == session_id)
        stmt = stmt.order_by(ChatMessage.created_at.desc()).limit(limit)
        with self._store_errors("load chat history"):
            rows = list(self.session.scalars(stmt).all())
        rows.reverse()
        return rows

    def page(
        self,
        *,
        user_id: str,
        session_id: Optional[str],
        limit: int,
        offset: int,
    ) -> tuple[list[ChatMessage], int]:
        filters = [ChatMessage.user_id == user_id]
        if session_id:
            filters.append(ChatMessage.chat_session_id == session_id)
        stmt = (
            select(ChatMessage)
            .where(*filters)
            .order_by(ChatMessage.created_at.desc())
            .limit(limit)
            .offset(offset)
        )
        with self._store_errors("page chat history"):
            total = self.session.scalar(select(func.count(ChatMessage.id)).where(*filters)) or 0
            rows = list(self.session.scalars(stmt).all())
        return rows, int(total)

    def sessions(self, *, user_id: str) -> list[dict]:
        stmt = (
            select(ChatMessage)
            .where(ChatMessage.user_id == user_id)
            .order_by(ChatMessage.created_at.asc())
        )
        with self._store_errors("list chat sessions"):
            messages = self.session.scalars(stmt).all()
        grouped: dict[str, dict] = {}
        for message in messages:
            entry = grouped.get(message.chat_session_id)
            if entry is None:
                grouped[message.chat_session_id] = {
                    "session_id": message.chat_session_id,
                    "created_at": message.created_at,
                    "first_message": message.question,
                    "message_count": 1,
                }
                continue
            entry["message_count"] += 1
            if entry["first_message"] is None and message.question:
                entry["first_message"] = message.question
        return sorted(grouped.values(), key=lambda item: item["created_at"], reverse=True)

    def delete_session(self, *, user_id: str, session_id: str) -> int:
        stmt = delete(ChatMessage).where(
            ChatMessage.user_id == user_id,
            ChatMessage.chat_session_id == session_id,
        )
        with self._store_errors("delete chat session"):
            result = self.session.execute(stmt)
        self._commit("delete chat session")
        return int(result.rowcount or 0)


def history_to_messages(rows: Sequence[ChatMessage]) -> list[dict[str, str]]:
    """Flatten stored turns into chat-completion style role/content messages."""
    messages: list[dict[str, str]] = []
    for row in rows:
        if row.question:
            messages.append({"role": "user", "content": row.question})
        if row.ai_response:
            messages.append({"role": "assistant", "content": row.ai_response})
    return messages
