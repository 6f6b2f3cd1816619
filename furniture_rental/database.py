import logging

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import declarative_base, sessionmaker

from .config import settings

logger = logging.getLogger(__name__)


def normalize_database_url(database_url: str) -> str:
    """Hosted PostgreSQL often hands out postgres://, SQLAlchemy needs postgresql://"""
    if database_url.startswith("postgres://"):
        return database_url.replace("postgres://", "postgresql://", 1)
    return database_url


def make_engine(database_url: str, echo: bool = False) -> Engine:
    """Create an engine with the SQLite threading workaround applied when needed."""
    database_url = normalize_database_url(database_url)

    # Handle SQLite special case for check_same_thread
    connect_args = {}
    if database_url.startswith("sqlite"):
        connect_args = {"check_same_thread": False, "timeout": 15}

    return create_engine(
        database_url,
        connect_args=connect_args,
        echo=echo,
        pool_pre_ping=True,
    )


def make_session_factory(bind: Engine) -> sessionmaker:
    return sessionmaker(autocommit=False, autoflush=False, bind=bind)


engine = make_engine(settings.database_url)

SessionLocal = make_session_factory(engine)

Base = declarative_base()


def create_tables(bind: Engine = None):
    """Create all tables in the database"""
    # Register models on Base.metadata before create_all
    from . import models  # noqa: F401

    target = bind or engine
    Base.metadata.create_all(bind=target)
    logger.info(f"Database tables ready ({target.url.get_backend_name()})")
