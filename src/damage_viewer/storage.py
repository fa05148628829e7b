"""
storage.py
----------
A small string key/value store used like the browser's localStorage:
overrides, filter choices, the selected damage and layout preferences
all live here. It is backed by one SQLAlchemy table so a write is a
single committed transaction.
"""

import json
import logging
from sqlalchemy import Column, String, Text, create_engine
from sqlalchemy.orm import DeclarativeBase, Session

from . import config

logger = logging.getLogger(__name__)


# SQL Alchemy requires this base class thing
class Base(DeclarativeBase):
    pass


class StorageItem(Base):
    """One key/value pair. Values are always stored as text."""
    __tablename__ = "viewer_storage"

    key = Column(String(255), primary_key=True)
    value = Column(Text, nullable=False)


class LocalStorage:
    """
    Synchronous string-keyed get/set store.

    Usage:
        storage = LocalStorage()                      # uses VIEWER_STORAGE_URL
        storage = LocalStorage(create_engine(...))    # e.g. in-memory SQLite in tests
    """

    def __init__(self, engine=None):
        self.engine = engine if engine is not None else create_engine(config.STORAGE_URL)
        # Create the table if not created yet
        Base.metadata.create_all(self.engine)

    def get_item(self, key):
        """Returns the stored text for key, or None if nothing was stored."""
        with Session(self.engine) as session:
            item = session.get(StorageItem, key)
            return item.value if item is not None else None

    def set_item(self, key, value):
        """Stores value (converted to text) under key, replacing any old value."""
        with Session(self.engine) as session:
            session.merge(StorageItem(key=key, value=str(value)))
            session.commit()

    def get_json(self, key, default=None):
        """
        Reads and parses a JSON value.
        Missing or unparseable content gives back `default` instead of an error.
        """
        raw = self.get_item(key)
        if raw is None:
            return default
        try:
            return json.loads(raw)
        except json.JSONDecodeError as e:
            logger.warning(f"Stored value for '{key}' is not valid JSON, using default. \nError: {e}")
            return default

    def set_json(self, key, value):
        self.set_item(key, json.dumps(value, ensure_ascii=False))
