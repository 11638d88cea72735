from sqlalchemy import create_engine, event
from sqlalchemy.orm import sessionmaker, declarative_base
from pathlib import Path

from config.app_config import app_config

DATABASE_URL = app_config.database_url
IS_SQLITE = DATABASE_URL.startswith('sqlite')

if IS_SQLITE and ':memory:' not in DATABASE_URL:
    Path(DATABASE_URL.replace('sqlite:///', '', 1)).parent.mkdir(parents=True, exist_ok=True)

if IS_SQLITE:
    engine = create_engine(
        DATABASE_URL,
        connect_args={'check_same_thread': False},
        echo=False,
        pool_pre_ping=True,
    )
else:
    engine = create_engine(
        DATABASE_URL,
        echo=False,
        pool_size=20,
        max_overflow=30,
        pool_pre_ping=True,  # Verify connections are alive before using
        pool_recycle=3600  # Recycle connections after 1 hour to prevent stale connections
    )


def set_sqlite_pragma(dbapi_conn, connection_record):
    cursor = dbapi_conn.cursor()
    cursor.execute("PRAGMA journal_mode=WAL")
    cursor.execute("PRAGMA synchronous=NORMAL")
    cursor.execute("PRAGMA busy_timeout=5000")  # Wait up to 5s for locks instead of failing immediately
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


if IS_SQLITE:
    event.listen(engine, "connect", set_sqlite_pragma)

SessionLocal = sessionmaker(bind=engine)
Base = declarative_base()

def get_db():
    """Dependency for FastAPI routes"""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
