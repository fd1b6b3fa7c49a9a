"""
Data Models Module

Pydantic models shared by the flow:
- TokenGrant: the result of exchanging an authorization code
- Principal: the authenticated identity kept in the session
- ErrorResponse: JSON error body returned by the demo application
"""

from datetime import datetime
from typing import Any, Dict, List, Optional
from urllib.parse import urlsplit

from pydantic import BaseModel, ConfigDict, Field

from webflow.auth.utils import parse_domain


# ============================================================================
# Token Exchange Models
# ============================================================================

class TokenGrant(BaseModel):
    """Tokens returned by the identity provider for an authorization code."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    access_token: str = Field(..., min_length=1, description="OAuth2 access token")
    refresh_token: Optional[str] = Field(None, description="OAuth2 refresh token")
    id_url: Optional[str] = Field(None, alias="id", description="Identity URL ending in /<org_id>/<user_id>")
    instance_url: Optional[str] = Field(None, description="API base URL of the user's instance")


# ============================================================================
# Principal
# ============================================================================

# Never written to the session; re-populated from configuration on load.
TRANSIENT_FIELDS = frozenset({"client_id", "client_secret", "version", "debugging"})


class Principal(BaseModel):
    """
    Authenticated identity and token material for one session.

    Extra attributes set by the host application are kept and persisted
    along with the declared fields.
    """

    model_config = ConfigDict(extra="allow")

    org_id: Optional[str] = None
    user_id: Optional[str] = None
    host: Optional[str] = None
    instance_url: Optional[str] = None
    access_token: Optional[str] = None
    refresh_token: Optional[str] = None
    endpoint: Optional[str] = None
    last_seen: Optional[datetime] = None

    client_id: Optional[str] = None
    client_secret: Optional[str] = None
    version: Optional[str] = None
    debugging: Optional[bool] = None

    logout_flag: bool = False

    def logout(self) -> None:
        """Mark the principal so the session slot is cleared after the request."""
        self.logout_flag = True

    @classmethod
    def from_grant(cls, grant: TokenGrant, endpoint: Optional[str] = None) -> "Principal":
        org_id, user_id = _ids_from_identity_url(grant.id_url)
        return cls(
            org_id=org_id,
            user_id=user_id,
            host=parse_domain(grant.instance_url),
            instance_url=grant.instance_url,
            access_token=grant.access_token,
            refresh_token=grant.refresh_token,
            endpoint=endpoint,
        )


def _ids_from_identity_url(id_url: Optional[str]) -> List[Optional[str]]:
    if not id_url:
        return [None, None]
    segments = [segment for segment in urlsplit(id_url).path.split("/") if segment]
    if len(segments) < 2:
        return [None, None]
    return segments[-2:]


# ============================================================================
# Error Models
# ============================================================================

class ErrorResponse(BaseModel):
    """Standardized error response model."""
    error: str = Field(..., description="Error type or code")
    message: str = Field(..., description="Human-readable error message")
    details: Optional[Dict[str, Any]] = Field(None, description="Additional error details")
