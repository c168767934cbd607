import logging

from dotenv import load_dotenv
from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from ..config import get_settings

# Load environment variables
load_dotenv()

logger = logging.getLogger(__name__)


def make_engine(database_url: str) -> Engine:
    """Create an engine; SQLite gets thread-sharing enabled since stores run in worker threads."""
    if database_url.startswith("sqlite"):
        kwargs = {"connect_args": {"check_same_thread": False}}
        if database_url in ("sqlite://", "sqlite:///:memory:"):
            # One shared connection, otherwise each thread sees its own empty database
            kwargs["poolclass"] = StaticPool
        return create_engine(database_url, **kwargs)
    return create_engine(database_url, pool_pre_ping=True)


def make_session_factory(bind: Engine) -> sessionmaker:
    return sessionmaker(autocommit=False, autoflush=False, expire_on_commit=False, bind=bind)


engine = make_engine(get_settings().DATABASE_URL)

SessionLocal = make_session_factory(engine)


def init_db(bind: Engine = engine) -> None:
    """Create all tables that do not exist yet."""
    from ..models.sql_models import Base

    logger.info("Creating database tables on %s", bind.url)
    Base.metadata.create_all(bind=bind)
