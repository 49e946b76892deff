from sqlalchemy.engine import Engine
from sqlmodel import SQLModel, create_engine

from app.core.settings import settings


def make_engine(database_url: str) -> Engine:
    connect_args = {"check_same_thread": False} if database_url.startswith("sqlite") else {}
    return create_engine(database_url, connect_args=connect_args)


engine = make_engine(settings.database_url)


def init_db(bind: Engine = engine) -> None:
    # registers the tables on SQLModel.metadata
    import app.models.entities  # noqa: F401

    SQLModel.metadata.create_all(bind)
