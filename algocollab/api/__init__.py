"""API package exports."""

from algocollab.api.middleware import RequestLoggingMiddleware
from algocollab.api.routes import router

__all__ = ["router", "RequestLoggingMiddleware"]
