"""
Demo Host Application
=====================

A small FastAPI application protected by ``WebServerFlowMiddleware``. It
shows how a host application plugs in the session store, reads the
principal, logs out, and owns the failure page.

Routes:
    - <prefix>          : authorize (intercepted by the middleware)
    - <prefix>/callback : callback (intercepted by the middleware)
    - <prefix>/failure  : HTML error page
    - /                 : current principal or anonymous
    - /logout           : clears the session principal
    - /health           : health check

Environment Variables Required:
    - WEBFLOW_ENDPOINTS: JSON, e.g. '{"login.salesforce.com": {"key": "...", "secret": "..."}}'
    - WEBFLOW_TOKEN_ENCRYPTION_KEY: 16+ byte secret for the session principal
    - WEBFLOW_APP_SESSION_SECRET: 32+ character secret for the session cookie

Running the Service:
    uvicorn webflow.main:create_app --factory --host 0.0.0.0 --port 8080
"""

import html
import logging
import sys
from http import HTTPStatus
from typing import Any, Dict, Optional

import uvicorn
from fastapi import Depends, FastAPI, Request
from fastapi.responses import HTMLResponse, JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.middleware.sessions import SessionMiddleware

from webflow.auth.flow import WebServerFlowMiddleware
from webflow.auth.helpers import get_principal, require_principal
from webflow.config import AppSettings, FlowSettings, get_app_settings, get_settings
from webflow.models import ErrorResponse, Principal


def setup_logging(log_level: str = "INFO") -> None:
    """
    Configure structured logging for the application.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
    """
    logging.basicConfig(
        level=getattr(logging, log_level.upper(), logging.INFO),
        format='{"timestamp": "%(asctime)s", "level": "%(levelname)s", "logger": "%(name)s", "message": "%(message)s", "module": "%(module)s", "function": "%(funcName)s"}',
        handlers=[logging.StreamHandler(sys.stdout)],
    )


def create_app(
    settings: Optional[FlowSettings] = None,
    app_settings: Optional[AppSettings] = None,
    **middleware_options: Any,
) -> FastAPI:
    """
    Application factory function.

    Args:
        settings: Middleware settings; loaded from the environment when omitted
        app_settings: Host settings; loaded from the environment when omitted
        **middleware_options: Extra ``WebServerFlowMiddleware`` arguments
            (``on_failure``, ``exchanger``)

    Returns:
        FastAPI: Configured application instance
    """
    settings = settings or get_settings()
    app_settings = app_settings or get_app_settings()

    setup_logging("DEBUG" if settings.debugging else app_settings.log_level)
    logger = logging.getLogger("webflow.main")

    app = FastAPI(
        title="webflow demo",
        description="OAuth2 web-server flow demo application",
        version="1.0.0",
    )

    # Last added runs first: the session must exist before the flow runs.
    app.add_middleware(WebServerFlowMiddleware, settings=settings, **middleware_options)
    app.add_middleware(SessionMiddleware, secret_key=app_settings.session_secret, https_only=False)

    @app.get("/", tags=["System"])
    async def root(request: Request) -> Dict[str, Any]:
        principal = get_principal(request)
        if principal is None:
            return {
                "authenticated": False,
                "login": settings.path_prefix,
            }
        return {
            "authenticated": True,
            "org_id": principal.org_id,
            "user_id": principal.user_id,
            "endpoint": principal.endpoint,
            "instance_url": principal.instance_url,
        }

    @app.get("/logout", tags=["System"])
    async def logout(principal: Principal = Depends(require_principal)) -> Dict[str, str]:
        principal.logout()
        return {"status": "logged_out"}

    @app.get(settings.failure_path, response_class=HTMLResponse, tags=["Authentication"])
    async def failure(message: str = "", state: Optional[str] = None) -> HTMLResponse:
        return _render_error_page(message, retry_path=settings.path_prefix)

    @app.get("/health", tags=["System"])
    async def health_check() -> Dict[str, str]:
        return {"status": "ok", "service": "webflow"}

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
        """
        Render HTTP errors as a standardized error response.

        Args:
            request: FastAPI request object
            exc: HTTP exception raised by a route or dependency

        Returns:
            JSONResponse: ErrorResponse body with the exception's status code
        """
        logger.info(
            f"HTTP {exc.status_code} on {request.url.path}: {exc.detail}",
            extra={"path": request.url.path, "method": request.method},
        )
        body = ErrorResponse(
            error=HTTPStatus(exc.status_code).phrase.lower().replace(" ", "_"),
            message=str(exc.detail),
        )
        return JSONResponse(
            status_code=exc.status_code,
            content=body.model_dump(exclude_none=True),
            headers=getattr(exc, "headers", None),
        )

    logger.info(
        "webflow demo application created",
        extra={
            "endpoints": list(settings.endpoints),
            "default_endpoint": settings.default_endpoint_id,
            "path_prefix": settings.path_prefix,
        },
    )
    return app


def _render_error_page(message: str, retry_path: str) -> HTMLResponse:
    """Render the authentication failure page."""
    html_content = f"""
    <!DOCTYPE html>
    <html lang="en">
    <head>
        <meta charset="UTF-8">
        <title>Authentication Failed</title>
    </head>
    <body>
        <h1>Authentication Failed</h1>
        <p class="message">{html.escape(message or "Unknown error")}</p>
        <a href="{html.escape(retry_path)}" class="button">Try Again</a>
    </body>
    </html>
    """
    return HTMLResponse(content=html_content, status_code=200)


if __name__ == "__main__":
    app_settings = get_app_settings()
    uvicorn.run(
        "webflow.main:create_app",
        factory=True,
        host=app_settings.host,
        port=app_settings.port,
        log_level=app_settings.log_level.lower(),
    )
