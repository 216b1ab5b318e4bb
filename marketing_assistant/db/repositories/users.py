from typing import Optional

from marketing_assistant.db.models import User
from marketing_assistant.db.repositories.base import Repository


class UsersRepository(Repository):
    def get(self, user_id: str) -> Optional[User]:
        with self._store_errors("load user"):
            return self.session.get(User, user_id)

    def upsert(self, user_id: str, *, email: Optional[str] = None, name: Optional[str] = None) -> User:
        user = self.get(user_id)
        if user is None:
            user = User(id=user_id, email=email, name=name)
        else:
            if email is not None:
                user.email = email
            if name is not None:
                user.name = name
        return self.save(user, operation="save user")

    def set_notes(self, user_id: str, notes: Optional[str]) -> Optional[User]:
        user = self.get(user_id)
        if not user:
            return None
        user.notes = notes
        self._commit("update user notes")
        self.session.refresh(user)
        return user

    def delete(self, user_id: str) -> bool:
        user = self.get(user_id)
        if not user:
            return False
        self.session.delete(user)
        self._commit("delete user")
        return True
