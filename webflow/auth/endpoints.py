"""
Endpoint resolution for multi-tenant identity providers.

Request parameters only choose *which* configured endpoint applies; the
client id and secret always come from server-side configuration. Unknown or
missing identifiers fall back to the default endpoint.
"""

import logging
from dataclasses import dataclass
from typing import Dict, Optional

from starlette.datastructures import QueryParams

from webflow.auth.utils import param_repeated, sanitize_mydomain
from webflow.config import EndpointCredentials, FlowSettings

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ResolvedEndpoint:
    """
    Attributes:
        endpoint: Configured identifier used for credential lookup and relay state
        credentials: Client id/secret of that endpoint
        site: Host the user is redirected to (custom domain or the endpoint)
    """

    endpoint: str
    credentials: EndpointCredentials
    site: str


class EndpointResolver:
    def __init__(self, settings: FlowSettings):
        self._endpoints = settings.endpoints
        self._default = settings.default_endpoint_id
        self._mydomain_suffix = settings.mydomain_suffix

    def get(self, endpoint_id: Optional[str]) -> Optional[EndpointCredentials]:
        """Strict lookup: None when the identifier is not configured."""
        if endpoint_id is None:
            return None
        return self._endpoints.get(endpoint_id.strip().lower())

    def resolve_id(self, endpoint_id: Optional[str]) -> str:
        """Configured identifier for the given hint, or the default."""
        if self.get(endpoint_id) is None:
            return self._default
        return endpoint_id.strip().lower()

    def lookup(self, endpoint_id: Optional[str]) -> EndpointCredentials:
        """Credentials for the given identifier, or the default credentials."""
        return self._endpoints[self.resolve_id(endpoint_id)]

    def resolve(self, endpoint_param: Optional[str], mydomain_param: Optional[str]) -> ResolvedEndpoint:
        """
        Select the endpoint for an authorize request.

        A ``mydomain`` value only changes where the user is redirected; the
        endpoint used for credentials is chosen from ``endpoint_param``.
        """
        endpoint = self.resolve_id(endpoint_param)
        mydomain = sanitize_mydomain(mydomain_param, self._mydomain_suffix) if mydomain_param else None
        if endpoint_param and endpoint != endpoint_param.strip().lower():
            logger.debug(f"Unknown endpoint {endpoint_param!r}, using default {endpoint}")
        return ResolvedEndpoint(
            endpoint=endpoint,
            credentials=self._endpoints[endpoint],
            site=mydomain or endpoint,
        )


def authorize_params(
    settings: FlowSettings,
    request_url: str,
    query_params: QueryParams,
    redirect_uri: str,
    state: str,
) -> Dict[str, str]:
    """
    Build the optional authorize parameters.

    Statically configured values are used unless the matching ``*_override``
    flag is set and the request supplies its own value. ``prompt`` and
    ``scope`` may be repeated in the request; all values are joined with a
    single space.
    """
    params: Dict[str, str] = {
        "redirect_uri": redirect_uri,
        "state": state,
    }
    if settings.display is not None:
        params["display"] = settings.display
    if settings.immediate is not None:
        params["immediate"] = "true" if settings.immediate else "false"
    if settings.prompt is not None:
        params["prompt"] = settings.prompt
    if settings.scope is not None and settings.scope.strip():
        params["scope"] = settings.scope

    if settings.display_override and query_params.get("display") is not None:
        params["display"] = query_params["display"]
    if settings.immediate_override and query_params.get("immediate") is not None:
        params["immediate"] = query_params["immediate"]
    for name, enabled in (("prompt", settings.prompt_override), ("scope", settings.scope_override)):
        if not enabled:
            continue
        joined = " ".join(param_repeated(request_url, name) or [])
        if joined.strip():
            params[name] = joined

    return params
