from factory_events import models  # noqa: F401  (registers ORM tables)
from factory_events.db import Base, engine


def init_db(bind=None):
    Base.metadata.create_all(bind=bind or engine)


if __name__ == "__main__":
    init_db()
