"""Persistence layer: SQLAlchemy models and the shared DBStorage instance."""
from models.db_storage import DBStorage

storage = DBStorage()
