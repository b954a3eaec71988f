from sqlalchemy.orm import DeclarativeBase


class Base(DeclarativeBase):
    """
    Base class for all SQLAlchemy ORM models.

    Every table lives in the ``beds24`` schema and inherits its metadata from here.
    """

    pass
