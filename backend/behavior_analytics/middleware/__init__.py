"""
Middleware package.
"""
from behavior_analytics.middleware.error_handler import ErrorHandlerMiddleware
from behavior_analytics.middleware.request_id import RequestIdMiddleware

__all__ = [
    "ErrorHandlerMiddleware",
    "RequestIdMiddleware",
]
