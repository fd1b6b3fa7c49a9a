"""
webflow: OAuth2 web-server flow middleware for Starlette/FastAPI.

Authenticates users against a multi-tenant OAuth2 identity provider whose
domain is chosen per request from a set of configured endpoints, and keeps
the resulting principal encrypted in the session.

Key components:
- WebServerFlowMiddleware: authorize/callback interception and session handling
- FlowSettings / build_settings: validated configuration
- Principal: the authenticated identity exposed on request.state.principal
- get_principal / require_principal: helpers for host applications
"""

from webflow.auth.flow import WebServerFlowMiddleware
from webflow.auth.helpers import (
    get_principal,
    is_authenticated,
    is_unauthenticated,
    optional_principal,
    require_principal,
)
from webflow.auth.session import SESSION_KEY
from webflow.config import EndpointCredentials, FlowSettings, build_settings
from webflow.exceptions import (
    ConfigurationError,
    ExchangeError,
    ProviderError,
    SessionDecodeError,
    StaleEndpointError,
    WebFlowError,
)
from webflow.models import Principal, TokenGrant

__all__ = [
    "WebServerFlowMiddleware",
    "FlowSettings",
    "EndpointCredentials",
    "build_settings",
    "Principal",
    "TokenGrant",
    "SESSION_KEY",
    "get_principal",
    "is_authenticated",
    "is_unauthenticated",
    "require_principal",
    "optional_principal",
    "WebFlowError",
    "ConfigurationError",
    "ProviderError",
    "ExchangeError",
    "SessionDecodeError",
    "StaleEndpointError",
]
