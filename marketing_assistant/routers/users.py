from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from marketing_assistant.db.deps import get_session
from marketing_assistant.db.models import User
from marketing_assistant.db.repositories import UsersRepository
from marketing_assistant.schemas.users import UserNotesUpdateRequest, UserOut, UserUpsertRequest

router = APIRouter(prefix="/api/users", tags=["users"])


def _user_out(user: User) -> UserOut:
    return UserOut(
        id=user.id,
        email=user.email,
        name=user.name,
        notes=user.notes,
        createdAt=user.created_at.isoformat(),
        updatedAt=user.updated_at.isoformat(),
    )


@router.post("", response_model=UserOut)
def upsert_user(payload: UserUpsertRequest, session: Session = Depends(get_session)) -> UserOut:
    user = UsersRepository(session).upsert(payload.userId, email=payload.email, name=payload.name)
    return _user_out(user)


@router.put("/notes", response_model=UserOut)
def update_notes(payload: UserNotesUpdateRequest, session: Session = Depends(get_session)) -> UserOut:
    user = UsersRepository(session).set_notes(payload.userId, payload.notes)
    if not user:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")
    return _user_out(user)


@router.delete("/{user_id}")
def delete_user(user_id: str, session: Session = Depends(get_session)) -> dict:
    if not UsersRepository(session).delete(user_id):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")
    return {"success": True}
