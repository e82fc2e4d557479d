from typing import Annotated

from fastapi import Depends
from sqlmodel import Session

from maxit_backend.database import SessionLocal


def get_db_session():
    """One transaction per request. Services commit; anything that escapes rolls back."""
    with SessionLocal() as session:
        try:
            yield session
        except Exception:
            session.rollback()
            raise


DBSession = Annotated[Session, Depends(get_db_session)]
