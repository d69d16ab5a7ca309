from __future__ import annotations
from typing import Generator
from sqlmodel import SQLModel, create_engine, Session

from companion.config import settings

engine = create_engine(f"sqlite:///{settings.companion_db}", echo=False, connect_args={"check_same_thread": False})


def init_db():
    # Importing the models registers their tables on SQLModel.metadata
    from companion import models  # noqa: F401

    SQLModel.metadata.create_all(engine)


def get_session() -> Generator[Session, None, None]:
    with Session(engine) as session:
        yield session
