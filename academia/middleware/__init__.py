"""Middleware components for the application."""

from academia.middleware.auth import APIKeyMiddleware
from academia.middleware.session import SessionCookieMiddleware

__all__ = ["APIKeyMiddleware", "SessionCookieMiddleware"]
