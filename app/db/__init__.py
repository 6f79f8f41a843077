from sqlalchemy.orm import Session

from .base import Base, SessionLocal, engine  # noqa


class GetDB:  # Context Manager
    def __init__(self):
        self.db = SessionLocal()

    def __enter__(self):
        return self.db

    def __exit__(self, exc_type, exc_value, traceback):
        if isinstance(exc_value, Exception):
            self.db.rollback()
        self.db.close()


def get_db():  # Dependency
    with GetDB() as db:
        yield db


def init_db():
    """Create missing tables. Models must be imported so they register on Base."""
    from app.db import models  # noqa: F401

    Base.metadata.create_all(bind=engine)


from app.db import crud  # noqa: E402
from app.db.crud import get_jwt_secret_key  # noqa: E402

__all__ = [
    "Base",
    "GetDB",
    "Session",
    "SessionLocal",
    "crud",
    "engine",
    "get_db",
    "get_jwt_secret_key",
    "init_db",
]
