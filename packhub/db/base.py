"""Declarative base for packhub models."""

from advanced_alchemy.base import UUIDAuditBase


class Base(UUIDAuditBase):
    """Base model with a UUID primary key and created_at/updated_at columns."""

    __abstract__ = True
