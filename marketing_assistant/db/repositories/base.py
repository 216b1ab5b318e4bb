import logging
from contextlib import contextmanager
from typing import Iterator

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from marketing_assistant.errors import StoreError


logger = logging.getLogger(__name__)


class Repository:
    def __init__(self, session: Session) -> None:
        self.session = session

    @contextmanager
    def _store_errors(self, operation: str) -> Iterator[None]:
        """Roll back and re-raise any SQLAlchemy failure inside the block as a StoreError."""
        try:
            yield
        except SQLAlchemyError as exc:
            self.session.rollback()
            logger.exception("Store operation failed", extra={"operation": operation})
            raise StoreError(f"Failed to {operation}.", details={"operation": operation}) from exc

    def _commit(self, operation: str) -> None:
        with self._store_errors(operation):
            self.session.commit()

    def save(self, obj, *, operation: str = "save record"):
        self.session.add(obj)
        self._commit(operation)
        self.session.refresh(obj)
        return obj
