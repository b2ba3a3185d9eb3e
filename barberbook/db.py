# barberbook/db.py

from sqlmodel import SQLModel, create_engine, Session

from .config import settings


def make_engine(url: str = settings.DATABASE_URL, **kwargs):
    connect_args = {}
    if url.startswith("sqlite"):
        connect_args["check_same_thread"] = False  # required for SQLite + FastAPI
    return create_engine(url, echo=settings.DATABASE_ECHO, connect_args=connect_args, **kwargs)


engine = make_engine()


def init_db(bind=None) -> None:
    from . import models  # noqa: F401  registers the tables

    SQLModel.metadata.create_all(bind or engine)


# Dependency: one session per request
def get_session():
    with Session(engine) as session:
        yield session
