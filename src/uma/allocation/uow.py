"""Transaction boundary used by the SQL allocation store."""
from __future__ import annotations

from contextlib import AbstractContextManager
from dataclasses import dataclass, field
from typing import Callable

from sqlalchemy.exc import OperationalError, SQLAlchemyError
from sqlalchemy.orm import Session


class UnitOfWorkError(RuntimeError):
    """Non-transient failure while committing allocation changes."""


SessionFactory = Callable[[], Session]


@dataclass(slots=True)
class SQLAlchemyUnitOfWork(AbstractContextManager):
    """One session, committed on clean exit and rolled back on error.

    ``OperationalError`` raised while committing propagates unchanged so the
    store's retry policy can recognise it; other SQLAlchemy failures are
    wrapped in :class:`UnitOfWorkError`.
    """

    session_factory: SessionFactory
    session: Session = field(init=False)
    _finished: bool = field(default=False, init=False)

    def __post_init__(self) -> None:
        self.session = self.session_factory()

    def __enter__(self) -> "SQLAlchemyUnitOfWork":
        return self

    def __exit__(self, exc_type, exc, tb) -> bool:
        try:
            if exc is not None:
                self.rollback()
            elif not self._finished:
                self.commit()
        finally:
            self.session.close()
        return False

    def commit(self) -> None:
        try:
            self.session.commit()
        except OperationalError:
            self.session.rollback()
            raise
        except SQLAlchemyError as exc:
            self.session.rollback()
            raise UnitOfWorkError("COMMIT_FAILED") from exc
        finally:
            self._finished = True

    def rollback(self) -> None:
        self._finished = True
        self.session.rollback()


__all__ = ["SQLAlchemyUnitOfWork", "UnitOfWorkError"]
