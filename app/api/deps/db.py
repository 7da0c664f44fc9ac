"""Database session dependencies."""

from collections.abc import Generator

from fastapi import Depends
from sqlalchemy.orm import Session

from api.deps.manager import get_manager_context
from manager.context import ManagerContext


def get_db(context: ManagerContext = Depends(get_manager_context)) -> Generator[Session, None, None]:
    db = context.session_factory()
    try:
        yield db
    finally:
        db.close()
