"""Database session management for matchday.

Provides engine factory, session management, database initialization and
the ``GameContext`` handle that every core operation receives in place of a
process-wide "current save" global.
Default database: data/save.db (SQLite).
"""

from __future__ import annotations

from collections.abc import Iterator
from contextlib import AbstractContextManager, contextmanager
from dataclasses import dataclass, field
from pathlib import Path

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from matchday.db.models import Base


DEFAULT_DB_PATH = Path(__file__).parent.parent.parent.parent / "data" / "save.db"
DEFAULT_SAVE_ID = "default"
MEMORY_DB = ":memory:"


def get_engine(db_path: str | Path | None = None, echo: bool = False) -> Engine:
    """Create a SQLAlchemy engine for the SQLite database.

    Args:
        db_path: Path to the SQLite file, or ":memory:". Defaults to data/save.db.
        echo: If True, log all SQL statements.

    Returns:
        SQLAlchemy Engine instance.
    """
    if str(db_path) == MEMORY_DB:
        # One shared connection so every session sees the same in-memory database
        return create_engine(
            "sqlite://",
            echo=echo,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )

    path = Path(db_path) if db_path else DEFAULT_DB_PATH
    path.parent.mkdir(parents=True, exist_ok=True)
    return create_engine(f"sqlite:///{path}", echo=echo)


def get_session(engine: Engine | None = None) -> Session:
    """Create a new database session.

    Args:
        engine: SQLAlchemy engine. Creates default if None.

    Returns:
        New Session instance.
    """
    if engine is None:
        engine = get_engine()
    session_factory = sessionmaker(bind=engine)
    return session_factory()


def init_db(engine: Engine | None = None) -> Engine:
    """Initialize the database — create all tables.

    Args:
        engine: SQLAlchemy engine. Creates default if None.

    Returns:
        The engine used.
    """
    if engine is None:
        engine = get_engine()
    Base.metadata.create_all(engine)
    return engine


@contextmanager
def session_scope(session_factory: sessionmaker) -> Iterator[Session]:
    """Transactional scope: commit on success, roll back on any error."""
    session = session_factory()
    try:
        yield session
        session.commit()
    except BaseException:
        session.rollback()
        raise
    finally:
        session.close()


@dataclass
class GameContext:
    """Handle for one loaded save.

    Created on game load and discarded on save switch/close. All state that
    used to be looked up as "the first row" (game clock, active season) is
    keyed by ``save_id``.
    """

    engine: Engine
    save_id: str = DEFAULT_SAVE_ID
    session_factory: sessionmaker = field(init=False, repr=False)

    def __post_init__(self) -> None:
        self.session_factory = sessionmaker(bind=self.engine, expire_on_commit=False)

    @classmethod
    def open(
        cls,
        db_path: str | Path | None = None,
        save_id: str = DEFAULT_SAVE_ID,
        echo: bool = False,
    ) -> "GameContext":
        """Open (and create if needed) a save database."""
        engine = init_db(get_engine(db_path, echo=echo))
        return cls(engine=engine, save_id=save_id)

    def session_scope(self) -> AbstractContextManager[Session]:
        return session_scope(self.session_factory)

    def close(self) -> None:
        self.engine.dispose()
