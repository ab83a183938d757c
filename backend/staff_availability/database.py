from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from .config import settings


def create_db_engine(url: str):
    # check_same_thread=False: SQLite is read from FastAPI worker threads
    connect_args = {"check_same_thread": False} if url.startswith("sqlite") else {}
    return create_engine(url, connect_args=connect_args)


# No DATABASE_URL → the index starts empty and is filled by the appointment feed
engine = create_db_engine(settings.resolved_database_url) if settings.database_url else None

SessionLocal = sessionmaker(
    autocommit=False,
    autoflush=False,
    bind=engine
)
