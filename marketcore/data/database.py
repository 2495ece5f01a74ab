# marketcore/data/database.py
from contextlib import contextmanager
from typing import Iterator

from sqlalchemy import BigInteger, Integer, create_engine
from sqlalchemy.orm import Session, declarative_base, sessionmaker
from sqlalchemy.pool import StaticPool

from marketcore.utils.settings import DATABASE_URL

# sqlite only autoincrements INTEGER PRIMARY KEY
IdType = BigInteger().with_variant(Integer(), "sqlite")

Base = declarative_base()


def build_engine(url: str = DATABASE_URL):
    if url.startswith("sqlite"):
        return create_engine(
            url,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )
    return create_engine(url, pool_pre_ping=True)


engine = build_engine()
SessionLocal = sessionmaker(bind=engine, autocommit=False, autoflush=True)


def init_db(bind=None) -> None:
    # models must be imported before create_all so they are in Base.metadata
    import marketcore.data.models  # noqa: F401

    Base.metadata.create_all(bind=bind or engine)


def get_db() -> Iterator[Session]:
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


@contextmanager
def transaction(db: Session) -> Iterator[Session]:
    """
    One unit of work: commit when the block finishes, roll back on any error.
    Stock ledger calls made inside the block share this transaction.
    """
    try:
        yield db
        db.commit()
    except Exception:
        db.rollback()
        raise
