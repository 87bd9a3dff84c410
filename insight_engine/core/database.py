"""
Database connection management for the SQL observation store.

Any SQLAlchemy URL works. SQLite is the default for single-device installs;
server databases get a pooled engine.
"""
from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import declarative_base
from sqlalchemy.orm import sessionmaker
from insight_engine.core.config import settings
import logging

logger = logging.getLogger(__name__)

Base = declarative_base()


def create_store_engine(database_url: str) -> Engine:
    """
    Create an engine for the given URL.

    SQLite gets no pool sizing (its default pools reject the options);
    everything else gets pre-ping and recycle settings from config.
    """
    if database_url.startswith("sqlite"):
        new_engine = create_engine(
            database_url,
            connect_args={"check_same_thread": False},
            echo=settings.DEBUG,  # Log SQL queries in debug mode
        )
    else:
        new_engine = create_engine(
            database_url,
            pool_size=settings.DB_POOL_SIZE,
            max_overflow=settings.DB_MAX_OVERFLOW,
            pool_recycle=settings.DB_POOL_RECYCLE,
            pool_pre_ping=True,  # Verify connections before using
            echo=settings.DEBUG,
        )

    @event.listens_for(new_engine, "connect")
    def receive_connect(dbapi_conn, connection_record):
        logger.debug("New store database connection established")

    return new_engine


def create_session_factory(bind: Engine) -> sessionmaker:
    """Session factory bound to an engine."""
    return sessionmaker(
        autocommit=False,
        autoflush=False,
        bind=bind,
        expire_on_commit=False,  # Prevent lazy loading issues
    )


# Default engine and session factory from settings
engine = create_store_engine(settings.DATABASE_URL)
SessionLocal = create_session_factory(engine)


def init_db(bind: Engine = None) -> None:
    """Create the store tables if they do not exist."""
    # Imported for its side effect of registering the tables on Base
    from insight_engine import models  # noqa: F401

    Base.metadata.create_all(bind=bind or engine)

