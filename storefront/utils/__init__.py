"""Utility modules"""

from .database import get_db, engine, Base, init_db

__all__ = ["get_db", "engine", "Base", "init_db"]
