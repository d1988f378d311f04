"""Declarative base shared by all ORM models."""

from typing import Any, ClassVar

from sqlalchemy import MetaData
from sqlalchemy.orm import DeclarativeBase

# Deterministic constraint names so Alembic revisions can reference them.
NAMING_CONVENTION = {
    "ix": "ix_%(column_0_label)s",
    "uq": "uq_%(table_name)s_%(column_0_name)s",
    "ck": "ck_%(table_name)s_%(constraint_name)s",
    "fk": "fk_%(table_name)s_%(column_0_name)s_%(referred_table_name)s",
    "pk": "pk_%(table_name)s",
}


class Base(DeclarativeBase):
    """Base class for BehaviorMarket models."""

    metadata = MetaData(naming_convention=NAMING_CONVENTION)

    # Server-generated timestamps are read back with RETURNING; async sessions cannot lazy-load them.
    __mapper_args__: ClassVar[dict[str, Any]] = {"eager_defaults": True}
