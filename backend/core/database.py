from sqlalchemy import create_engine
from sqlalchemy.orm import declarative_base, sessionmaker
import logging

from backend.core.config import settings

logger = logging.getLogger(__name__)

DATABASE_URL = settings.DATABASE_URL

connect_args = {"check_same_thread": False} if DATABASE_URL.startswith("sqlite") else {}
engine = create_engine(DATABASE_URL, connect_args=connect_args)
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

Base = declarative_base()

def get_db():
    """
    Dependency to get a database session.
    Ensures the database session is always closed after the request.
    """
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()

# Used for local development and tests; production schemas are managed with Alembic.
def create_db_and_tables():
    # Importing the package registers every model with Base.metadata
    import backend.models  # noqa: F401
    Base.metadata.create_all(bind=engine)

def commit_or_rollback(db, *objs):
    """Commits the session and refreshes `objs`; on failure the session is rolled back and the error re-raised."""
    try:
        db.commit()
        for obj in objs:
            db.refresh(obj)
    except Exception as e:
        db.rollback()
        logger.error(f"Database commit failed: {e}", exc_info=True)
        raise
    return objs[0] if len(objs) == 1 else objs
