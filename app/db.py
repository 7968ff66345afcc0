from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, DeclarativeBase

from app.config import DATABASE_URL, DB_POOL_SIZE, DB_MAX_OVERFLOW


def build_engine(url: str):
    """
    Створює SQLAlchemy engine для заданої адреси бази даних.

    Для серверних баз пул з'єднань обмежений DB_POOL_SIZE. SQLite лишається
    з налаштуваннями за замовчуванням і доступний з потоків FastAPI.
    """
    if url.startswith("sqlite"):
        return create_engine(url, connect_args={"check_same_thread": False})
    return create_engine(
        url,
        pool_size=DB_POOL_SIZE,
        max_overflow=DB_MAX_OVERFLOW,
        pool_pre_ping=True,
    )


engine = build_engine(DATABASE_URL)
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


class Base(DeclarativeBase):
    pass


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
