"""
HTTP middleware
"""
from .logging_middleware import LoggingMiddleware

__all__ = ["LoggingMiddleware"]
