# backend/teamhub/db/base.py

"""
Single source of truth for the SQLAlchemy Declarative Base.

This file must NOT import teamhub.models (circular import via alembic env).
"""

from sqlalchemy.orm import DeclarativeBase


class Base(DeclarativeBase):
    """Base class for all ORM models."""
    pass
