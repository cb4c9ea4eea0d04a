from functools import lru_cache

from sqlmodel import SQLModel, create_engine

from karigardesk import config


@lru_cache(maxsize=None)
def get_engine():
    connect_args = {"check_same_thread": False} if config.DATABASE_URL.startswith("sqlite") else {}
    return create_engine(config.DATABASE_URL, echo=config.DATABASE_ECHO, connect_args=connect_args)


def create_tables(engine=None) -> None:
    # table models must be imported before create_all sees them
    from karigardesk.models import design, order  # noqa: F401

    SQLModel.metadata.create_all(engine or get_engine())
