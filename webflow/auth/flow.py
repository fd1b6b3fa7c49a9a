"""
OAuth2 web-server flow middleware.

This module implements the OAuth 2.0 authorization code flow as Starlette
middleware for a multi-tenant identity provider:

- ``GET <prefix>`` redirects to the provider's authorize page
- ``GET <prefix>/callback`` exchanges the code and stores the principal
- every other request gets the session principal on
  ``request.state.principal`` and has it re-persisted afterwards

Usage:
    app = FastAPI()
    app.add_middleware(
        WebServerFlowMiddleware,
        endpoints={"login.salesforce.com": {"key": CLIENT_ID, "secret": CLIENT_SECRET}},
        token_encryption_key=TOKEN_ENCRYPTION_KEY,
    )
    app.add_middleware(SessionMiddleware, secret_key=SESSION_SECRET)
"""

import logging
from dataclasses import dataclass
from typing import Any, MutableMapping, Optional
from urllib.parse import quote, urlencode

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import RedirectResponse, Response
from starlette.types import ASGIApp

from webflow.auth.endpoints import EndpointResolver, authorize_params
from webflow.auth.exchange import HttpxTokenExchanger, TokenExchanger
from webflow.auth.failure import FailureHandler, FailurePolicy
from webflow.auth.paths import PathRouter, Phase
from webflow.auth.session import SessionCodec
from webflow.auth.state import RelayState
from webflow.auth.utils import full_host, parse_domain
from webflow.config import FlowSettings, build_settings
from webflow.exceptions import ProviderError, WebFlowError
from webflow.models import Principal

logger = logging.getLogger(__name__)


# =============================================================================
# Per-request Context
# =============================================================================

@dataclass
class FlowContext:
    """Request-scoped values; created fresh for every request."""

    request: Request
    session: MutableMapping[str, Any]

    @property
    def params(self):
        return self.request.query_params

    @property
    def relay_state(self) -> RelayState:
        return RelayState.parse(self.params.get("state"))


@dataclass(frozen=True)
class FlowOutcome:
    """Result of an authorize or callback phase: a redirect or an error."""

    location: Optional[str] = None
    error: Optional[Exception] = None

    @property
    def failed(self) -> bool:
        return self.error is not None


# =============================================================================
# Middleware
# =============================================================================

class WebServerFlowMiddleware(BaseHTTPMiddleware):
    """
    Intercepts the authorize and callback paths and manages the session
    principal for every other request.

    Args:
        app: Wrapped ASGI application
        settings: Pre-built settings; built from ``options`` when omitted
        on_failure: Optional ``(request, error) -> Response`` failure handler
        exchanger: Token exchange collaborator; httpx based by default
        **options: Keyword options for ``FlowSettings``

    Raises:
        ConfigurationError: If the endpoints or the encryption key are invalid
    """

    def __init__(
        self,
        app: ASGIApp,
        settings: Optional[FlowSettings] = None,
        *,
        on_failure: Optional[FailureHandler] = None,
        exchanger: Optional[TokenExchanger] = None,
        **options: Any,
    ):
        super().__init__(app)
        self.settings = settings if settings is not None else build_settings(**options)
        self.router = PathRouter(self.settings.path_prefix)
        self.resolver = EndpointResolver(self.settings)
        self.codec = SessionCodec(self.settings, self.resolver)
        self.failure_policy = FailurePolicy(self.settings.failure_path, on_failure)
        self.exchanger = exchanger or HttpxTokenExchanger(
            token_path=self.settings.token_path,
            timeout=self.settings.exchange_timeout,
        )

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        context = FlowContext(request=request, session=request.scope.setdefault("session", {}))

        phase = self.router.classify(request.url.path)
        if phase is Phase.AUTHORIZE:
            return await self._respond(context, await self._run(self._authorize, context))
        if phase is Phase.CALLBACK:
            return await self._respond(context, await self._run(self._callback, context))

        request.state.principal = self.codec.retrieve(context.session)
        response = await call_next(request)
        self.codec.save(context.session, getattr(request.state, "principal", None))
        return response

    # =========================================================================
    # Flow Boundary
    # =========================================================================

    async def _run(self, phase, context: FlowContext) -> FlowOutcome:
        try:
            return FlowOutcome(location=await phase(context))
        except Exception as e:
            return FlowOutcome(error=e)

    async def _respond(self, context: FlowContext, outcome: FlowOutcome) -> Response:
        if outcome.failed:
            return await self.failure_policy.respond(context.request, outcome.error)
        return RedirectResponse(url=outcome.location, status_code=302)

    # =========================================================================
    # Authorize Phase
    # =========================================================================

    async def _authorize(self, context: FlowContext) -> str:
        params = context.params
        resolved = self.resolver.resolve(params.get("endpoint"), params.get("mydomain"))
        state = RelayState.build(params.get("state") or "/", resolved.endpoint)

        logger.debug(
            f"Authorize phase: endpoint={resolved.endpoint} site={resolved.site} state={state}"
        )

        query = {
            "response_type": "code",
            "client_id": resolved.credentials.key,
        }
        query.update(
            authorize_params(
                self.settings,
                str(context.request.url),
                params,
                redirect_uri=self._redirect_uri(context),
                state=state.encode(),
            )
        )
        return f"{self._provider_base(resolved.site)}{self.settings.authorize_path}?{urlencode(query, quote_via=quote)}"

    # =========================================================================
    # Callback Phase
    # =========================================================================

    async def _callback(self, context: FlowContext) -> str:
        params = context.params
        _check_error(params.get("error"), params.get("error_description"))

        code = params.get("code")
        if not code:
            raise ProviderError("Missing authorization code")

        endpoint_hint, remaining = context.relay_state.extract_endpoint()
        endpoint = self.resolver.resolve_id(endpoint_hint)
        credentials = self.resolver.lookup(endpoint)

        logger.debug(f"Callback phase: endpoint={endpoint}, exchanging authorization code")

        grant = await self.exchanger.exchange(
            endpoint,
            credentials.key,
            credentials.secret,
            code,
            self._redirect_uri(context),
        )
        principal = Principal.from_grant(grant, endpoint=endpoint)
        self.codec.save(context.session, principal)

        logger.info(f"Authenticated user {principal.user_id} of org {principal.org_id} via {endpoint}")
        return remaining.finalize()

    # =========================================================================
    # Helpers
    # =========================================================================

    def _redirect_uri(self, context: FlowContext) -> str:
        return f"{full_host(context.request, self.settings.origin)}{self.settings.callback_path}"

    def _provider_base(self, site: str) -> str:
        host = parse_domain(site)
        if host is None:
            raise WebFlowError(f"Invalid provider domain: {site!r}")
        return f"https://{host}"


def _check_error(error: Optional[str], error_description: Optional[str]) -> None:
    if error is None or not error.strip():
        return
    message = " ".join(part.strip() for part in (error, error_description) if part and part.strip())
    raise ProviderError(message)
