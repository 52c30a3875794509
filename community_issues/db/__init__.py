"""
Database package for the Community Issue Tracker.
"""

from .base import Base, get_db, get_engine, init_database, session_scope
from .models import AuthorityModel, IssueImageModel, IssueModel

__all__ = [
    "Base",
    "get_engine",
    "get_db",
    "init_database",
    "session_scope",
    "AuthorityModel",
    "IssueModel",
    "IssueImageModel",
]
