from sqlalchemy.orm import DeclarativeBase

class Base(DeclarativeBase):
    """
    Base class for all ORM models.

    This file intentionally has NO engine/session imports so that Alembic and
    the in-memory test doubles can import the models without a database driver.
    """
    pass
