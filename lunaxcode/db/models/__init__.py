"""
Database models module.

This module imports all database models to ensure they are registered with SQLAlchemy's Base.metadata
before table creation.
"""
from lunaxcode.db.models.user import User
from lunaxcode.db.models.ai_setting import AISetting
from lunaxcode.db.models.ai_usage_log import AIUsageLog

__all__ = [
    "User",
    "AISetting",
    "AIUsageLog",
]
