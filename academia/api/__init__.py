"""API endpoints package."""

from academia.api.router import (
    create_auth_router,
    create_protected_router,
    create_public_router,
)

__all__ = ["create_auth_router", "create_protected_router", "create_public_router"]
