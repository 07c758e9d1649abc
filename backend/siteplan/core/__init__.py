"""
SitePlan - Core Package
=======================

Configuration, persistence, schemas and the lifecycle engine.
"""

from siteplan.core.config import settings
from siteplan.core.database import Base, get_db, get_db_session

__all__ = ["Base", "get_db", "get_db_session", "settings"]
