"""
Database configuration
"""
import logging

from sqlalchemy import create_engine
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import declarative_base, sessionmaker

from roast_studio.core.config import settings

logger = logging.getLogger(__name__)

GLOBAL_STATE_ID = 1


def make_engine(url: str):
    """Create an engine; SQLite connections may be shared across threads"""
    connect_args = {"check_same_thread": False} if url.startswith("sqlite") else {}
    return create_engine(
        url,
        connect_args=connect_args,
        echo=False  # True prints every SQL statement
    )


engine = make_engine(settings.DATABASE_URL)
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

Base = declarative_base()

def get_db():
    """Yield a database session"""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def create_schema(bind) -> None:
    """Create all tables and the singleton global round state row"""
    # Register every model on the metadata
    from roast_studio.models import (  # noqa: F401
        GlobalRoundState,
        Persona,
        PlaybackSnapshot,
        RoastExchange,
        RoastMessage,
        RoastSession,
    )

    Base.metadata.create_all(bind=bind)

    Session = sessionmaker(bind=bind)
    db = Session()
    try:
        if db.get(GlobalRoundState, GLOBAL_STATE_ID) is None:
            db.add(GlobalRoundState(id=GLOBAL_STATE_ID, round_state="WAITING"))
            db.commit()
    except IntegrityError:
        # Another process created it first
        db.rollback()
    finally:
        db.close()


async def init_db():
    """Initialise the database"""
    create_schema(engine)
    logger.info("Database initialised at %s", settings.DATABASE_URL)
