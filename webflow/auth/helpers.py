"""
Helpers for host applications behind ``WebServerFlowMiddleware``.

Usage in routes:
    @app.get("/me")
    async def me(principal: Principal = Depends(require_principal)):
        return {"user_id": principal.user_id}
"""

from typing import Optional

from fastapi import HTTPException, Request, status

from webflow.models import Principal


def get_principal(request: Request) -> Optional[Principal]:
    """The session principal loaded by the middleware, or None."""
    return getattr(request.state, "principal", None)


def is_authenticated(request: Request) -> bool:
    return get_principal(request) is not None


def is_unauthenticated(request: Request) -> bool:
    return not is_authenticated(request)


# =============================================================================
# FastAPI Dependencies
# =============================================================================

async def require_principal(request: Request) -> Principal:
    """
    FastAPI dependency returning the current principal.

    Raises:
        HTTPException: 401 if the request is not authenticated
    """
    principal = get_principal(request)
    if principal is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
        )
    return principal


async def optional_principal(request: Request) -> Optional[Principal]:
    """FastAPI dependency for optional authentication."""
    return get_principal(request)
