"""
Declarative base for ORM models (SQLAlchemy 2.0 style)
"""
from sqlalchemy.orm import DeclarativeBase


class Base(DeclarativeBase):
    pass


# Shared with alembic autogenerate
metadata = Base.metadata
