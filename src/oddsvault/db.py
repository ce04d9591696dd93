from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, declarative_base
from .config import DATABASE_URL, SQL_ECHO

# Declarative Base, imported by models.py
Base = declarative_base()

_engine = create_engine(DATABASE_URL, echo=SQL_ECHO, pool_pre_ping=True)

# expire_on_commit=False: views are built after commit without a refresh query
SessionLocal = sessionmaker(bind=_engine, autocommit=False, autoflush=False, expire_on_commit=False)


def get_engine():
    return _engine


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
