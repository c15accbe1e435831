import logging
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator

from sqlalchemy.pool import StaticPool
from sqlmodel import Session, create_engine

log = logging.getLogger(__name__)


def get_engine(db_path: str):
    """为 SQLite 文件（或 ":memory:"）创建 engine."""
    if db_path == ":memory:":
        # 内存库需要单连接共享，否则每个 Session 看到的是不同的库
        return create_engine(
            "sqlite://",
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )

    Path(db_path).parent.mkdir(parents=True, exist_ok=True)
    return create_engine(
        f"sqlite:///{db_path}",
        connect_args={"check_same_thread": False},
    )


class Database:
    """Store client, created once per process and passed to the services.

    Lifecycle: ``connect()`` at startup, ``close()`` at shutdown.
    """

    def __init__(self, db_path: str):
        self.db_path = db_path
        self._engine = None

    @property
    def engine(self):
        if self._engine is None:
            raise RuntimeError("Database is not connected")
        return self._engine

    def connect(self):
        if self._engine is None:
            from .init import init_db

            self._engine = init_db(self.db_path)
            log.info(f"✓ Database connected: {self._engine.url}")
        return self._engine

    def close(self):
        if self._engine is not None:
            self._engine.dispose()
            self._engine = None
            log.info("Database connection closed")

    def session(self) -> Session:
        return Session(self.engine, expire_on_commit=False)

    @contextmanager
    def session_scope(self) -> Iterator[Session]:
        """提交/回滚由上下文统一处理"""
        session = self.session()
        try:
            yield session
            session.commit()
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()
