"""Database module for PulseWatch."""

from pulsewatch.database.base import Base
from pulsewatch.database.session import create_engine, create_session_factory, create_tables

__all__ = ["Base", "create_engine", "create_session_factory", "create_tables"]
