from sqlalchemy import create_engine
from sqlalchemy.orm import declarative_base, sessionmaker
import os
import logging

logger = logging.getLogger("fitfix")

Base = declarative_base()

# Set by init_db() at startup, torn down by shutdown_db()
engine = None
SessionLocal = None


def normalize_database_url(url: str) -> str:
    # Render/Heroku hand out postgres://, SQLAlchemy requires postgresql://
    if url.startswith("postgres://"):
        url = url.replace("postgres://", "postgresql://", 1)
    return url


def create_db_engine(url: str):
    url = normalize_database_url(url)

    if url.startswith("postgresql"):
        # Production: PostgreSQL with connection pooling
        return create_engine(
            url,
            pool_size=20,
            max_overflow=10,
            pool_timeout=30,
            pool_recycle=1800
        )

    # Development: SQLite (no connection pooling)
    if url.startswith("sqlite:///") and not url.endswith(":memory:"):
        os.makedirs(os.path.dirname(os.path.abspath(url[len("sqlite:///"):])), exist_ok=True)
    return create_engine(
        url,
        connect_args={"check_same_thread": False}
    )


def init_db(url: str):
    """Create the engine and session factory, then create any missing tables."""
    global engine, SessionLocal
    # Importing the models registers every table on Base.metadata
    import models_orm  # noqa: F401

    engine = create_db_engine(url)
    SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    Base.metadata.create_all(bind=engine)
    logger.info(f"Database initialized ({engine.url.get_backend_name()})")
    return SessionLocal


def shutdown_db():
    global engine, SessionLocal
    if engine is not None:
        engine.dispose()
        logger.info("Database engine disposed")
    engine = None
    SessionLocal = None


# --- UTILS ---
def get_db_session():
    if SessionLocal is None:
        raise RuntimeError("Database not initialized; call init_db() first")
    return SessionLocal()
