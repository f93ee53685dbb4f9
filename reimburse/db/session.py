# reimburse/db/session.py

from contextlib import contextmanager
from urllib.parse import quote_plus

from sqlalchemy import create_engine
from sqlalchemy.exc import InterfaceError, OperationalError
from sqlalchemy.orm import Session, sessionmaker

from reimburse.core.config import settings
from reimburse.core.exceptions import StoreUnavailable


def build_database_url() -> str:
    if settings.DATABASE_URL:
        return settings.DATABASE_URL

    # URL-encode password to handle special characters like @ $ !
    encoded_password = quote_plus(settings.DB_PASSWORD or "")

    return (
        f"postgresql+psycopg2://{settings.DB_USER}:"
        f"{encoded_password}@"
        f"{settings.DB_HOST}:"
        f"{settings.DB_PORT}/"
        f"{settings.DB_NAME}"
        f"?sslmode={settings.DB_SSLMODE}"
    )


DATABASE_URL = build_database_url()

engine = create_engine(
    DATABASE_URL,
    pool_pre_ping=True,
)

SessionLocal = sessionmaker(
    autocommit=False,
    autoflush=False,
    bind=engine,
)


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


@contextmanager
def store_guard(db: Session):
    """Turn connection-level database failures into StoreUnavailable."""
    try:
        yield db
    except (OperationalError, InterfaceError) as e:
        db.rollback()
        raise StoreUnavailable(str(e.orig)) from e
