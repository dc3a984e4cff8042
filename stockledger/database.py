"""
Database configuration:
- pool_pre_ping=True
- SSL enforced for Supabase
- Retry on OperationalError when opening a session
- SQLite in-memory fallback when DATABASE_URL is missing
"""
from sqlalchemy import create_engine, text
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import sessionmaker, declarative_base
from sqlalchemy.pool import QueuePool, StaticPool
from dotenv import load_dotenv
import logging
from typing import Generator
import time

from stockledger.config import settings

load_dotenv()

logger = logging.getLogger(__name__)

Base = declarative_base()

DATABASE_URL = settings.DATABASE_URL

if not DATABASE_URL:
    # Lets the app start without a database for local testing
    logger.warning("DATABASE_URL environment variable is not set. Using test configuration.")
    DATABASE_URL = "sqlite:///:memory:"

    engine = create_engine(
        DATABASE_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
else:
    # Add SSL mode for Supabase if not present
    if "supabase" in DATABASE_URL and "sslmode" not in DATABASE_URL:
        DATABASE_URL += "?sslmode=require"
        logger.info("Added sslmode=require to DATABASE_URL")

    logger.info("Database connection configured")

    engine = create_engine(
        DATABASE_URL,
        poolclass=QueuePool,
        pool_pre_ping=True,
        pool_size=5,
        max_overflow=10,
        pool_recycle=300,
        pool_timeout=30,
        echo=False,
        connect_args={
            "connect_timeout": 10,
            "keepalives": 1,
            "keepalives_idle": 30,
            "keepalives_interval": 10,
            "keepalives_count": 5,
        }
    )

SessionLocal = sessionmaker(
    autocommit=False,
    autoflush=False,
    bind=engine,
    expire_on_commit=False
)


def get_db() -> Generator:
    """
    Request-scoped session. Opening the connection is retried on
    OperationalError (DB_CONNECT_RETRIES times); errors raised by the
    request itself are never retried.
    """
    db = None
    for attempt in range(settings.DB_CONNECT_RETRIES + 1):
        db = SessionLocal()
        try:
            db.execute(text("SELECT 1"))
            break
        except OperationalError as e:
            db.close()
            if attempt == settings.DB_CONNECT_RETRIES:
                logger.error(f"Database connection failed after {attempt + 1} attempts: {e}")
                raise
            logger.warning(f"Database connection attempt {attempt + 1} failed, retrying...")
            time.sleep(1)

    try:
        yield db
    finally:
        db.close()


def check_connection() -> tuple[bool, str]:
    """Preflight check: can the configured database be reached"""
    if not settings.DATABASE_URL:
        return False, "DATABASE_URL not configured. Set DATABASE_URL in .env file."
    for attempt in range(settings.DB_CONNECT_RETRIES + 1):
        try:
            with engine.connect() as conn:
                conn.execute(text("SELECT 1"))
            return True, "Database connection successful"
        except OperationalError as e:
            if attempt == settings.DB_CONNECT_RETRIES:
                return False, f"Database connection failed: {str(e)}"
            time.sleep(1)
    return False, "Database connection test failed"
