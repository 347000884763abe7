"""
SQLAlchemy Base for Rivu Core.

This module provides the declarative base for all SQLAlchemy models.

Usage:
    from rivu.models.base import Base

    class MyModel(Base):
        __tablename__ = "my_table"
        ...
"""

from sqlalchemy.orm import DeclarativeBase


class Base(DeclarativeBase):
    """Declarative base shared by every Rivu table."""


__all__ = ["Base"]
