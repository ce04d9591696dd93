from .db import Base, get_engine
# model classes are imported so the tables get registered
from .models import Creator, OddsRecord  # noqa: F401


def create_tables(engine=None):
    Base.metadata.create_all(bind=engine or get_engine())


if __name__ == "__main__":
    create_tables()
    print("✔ Tables created in database.")
