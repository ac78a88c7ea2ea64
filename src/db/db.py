from pathlib import Path

from sqlalchemy import Engine, create_engine
from sqlalchemy.orm import Session, sessionmaker

from db.models import Base


def create_db_engine(db_file: Path, echo: bool = False) -> Engine:
    db_file.parent.mkdir(parents=True, exist_ok=True)
    engine = create_engine(f"sqlite:///{db_file}", echo=echo)
    Base.metadata.create_all(engine)
    return engine


def init_db(db_file: Path, echo: bool = False) -> Session:
    return sessionmaker(create_db_engine(db_file, echo=echo))()
