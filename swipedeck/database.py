"""
Database schema and connection management.

Uses SQLite with SQLAlchemy for the swipe journal.
"""

from datetime import datetime
from pathlib import Path
from sqlalchemy import create_engine, Column, Integer, String, DateTime
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, declarative_base, sessionmaker

Base = declarative_base()


class SwipeRecord(Base):
    """One resolved swipe decision."""

    __tablename__ = "swipes"

    id = Column(Integer, primary_key=True, autoincrement=True)
    swiper_id = Column(String, nullable=False, index=True)
    candidate_id = Column(String, nullable=False)
    action = Column(String, nullable=False)  # like, pass
    status = Column(String, nullable=False)  # accepted, matched, failed
    match_ref = Column(String, nullable=True)
    created_at = Column(DateTime, nullable=False, default=datetime.now)


def init_database(db_path: Path) -> Engine:
    """
    Initialize database and create tables.

    Connections are not bound to the creating thread, so journal writes
    can run on worker threads.

    Args:
        db_path: Path to SQLite database file

    Returns:
        Engine for the database; call dispose() when done with it
    """
    db_path.parent.mkdir(parents=True, exist_ok=True)
    engine = create_engine(f"sqlite:///{db_path}", connect_args={"check_same_thread": False})
    Base.metadata.create_all(engine)
    return engine


def get_session(engine: Engine) -> Session:
    """
    Get database session.

    Args:
        engine: Engine returned by init_database

    Returns:
        SQLAlchemy session
    """
    return sessionmaker(bind=engine)()
