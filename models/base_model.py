#!/usr/bin/env python3
"""
Declarative base and shared columns for the account store.

Every table gets a UUID string id and created/updated timestamps filled by
the database. Instances persist themselves through the DBStorage singleton
(`models.storage`); serialization for responses lives in the marshmallow
schemas, never on the model.
"""

from __future__ import annotations

from datetime import datetime, timezone
import uuid

# models.storage is resolved at call time; models/__init__ imports this module
import models

from sqlalchemy import Column, DateTime, String
from sqlalchemy.orm import declarative_base
from sqlalchemy.sql import func

Base = declarative_base()


def new_id() -> str:
    return str(uuid.uuid4())


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class BaseModel:
    """Columns and persistence helpers shared by Account and RefreshToken."""

    id = Column(String(36), primary_key=True, default=new_id, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

    def __init__(self, **fields):
        # Id assigned up front so callers can reference a row before it is flushed
        for name, value in fields.items():
            setattr(self, name, value)
        if self.id is None:
            self.id = new_id()

    def save(self):
        """Stamp updated_at and commit this instance."""
        self.updated_at = utcnow()
        models.storage.new(self)
        models.storage.save()

    def delete(self):
        """Mark for deletion; committed by the caller's next storage.save()."""
        models.storage.delete(self)
