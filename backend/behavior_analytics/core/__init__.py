"""
Core package containing configuration, database, security, errors and logging.
"""
from behavior_analytics.core.config import settings
from behavior_analytics.core.database import Base, DbSession, get_db_session
from behavior_analytics.core.exceptions import (
    AnalyticsError,
    EventPublishError,
    InvalidDateRangeError,
    report_operation,
)
from behavior_analytics.core.logging import configure_logging, get_logger
from behavior_analytics.core.security import (
    AdminUser,
    create_access_token,
    decode_access_token,
    require_admin,
)

__all__ = [
    "settings",
    "Base",
    "DbSession",
    "get_db_session",
    "configure_logging",
    "get_logger",
    "AnalyticsError",
    "EventPublishError",
    "InvalidDateRangeError",
    "report_operation",
    "AdminUser",
    "create_access_token",
    "decode_access_token",
    "require_admin",
]
