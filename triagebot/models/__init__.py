# triagebot/models/__init__.py
from triagebot.db.session import Base, engine, SessionLocal

# Import model modules so SQLAlchemy registers all mappers.
from . import consultation  # noqa: F401


def init_db() -> None:
    """Create tables if they don't exist."""
    Base.metadata.create_all(bind=engine)
