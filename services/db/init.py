"""Initialize database schema."""

from __future__ import annotations

from sqlmodel import SQLModel

from .connection import get_engine
from .models import *  # noqa: F401,F403


def init_db(db_path: str):
    engine = get_engine(db_path)
    SQLModel.metadata.create_all(engine)
    return engine
