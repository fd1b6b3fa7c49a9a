"""
Configuration module for the OAuth2 web-server flow middleware.

This module uses Pydantic Settings to load and validate the middleware
configuration: the identity-provider endpoints and their client credentials,
the session encryption key, the path prefix, and the optional authorize
parameters.

Options passed as keyword arguments take precedence over environment
variables (prefixed with ``WEBFLOW_``) and the ``.env`` file.
"""

import logging
from functools import lru_cache
from typing import Any, Dict, Optional

from pydantic import BaseModel, Field, ValidationError, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from webflow.exceptions import ConfigurationError

logger = logging.getLogger(__name__)


DEFAULT_PATH_PREFIX = "/auth/provider"
MIN_ENCRYPTION_KEY_BYTES = 16


class EndpointCredentials(BaseModel):
    """Client id/secret pair registered with one identity-provider endpoint."""

    key: str = Field(..., min_length=1, description="OAuth2 client id")
    secret: str = Field(..., min_length=1, description="OAuth2 client secret")

    model_config = {"frozen": True, "extra": "ignore"}


class FlowSettings(BaseSettings):
    """
    Settings for ``WebServerFlowMiddleware``.

    Constructed once when the middleware is created and never mutated
    afterwards, so a single instance is shared by all requests.
    """

    # =========================================================================
    # Identity Provider Endpoints
    # =========================================================================

    endpoints: Dict[str, EndpointCredentials] = Field(
        ...,
        description='Endpoint domain to credentials, e.g. {"login.salesforce.com": {"key": ..., "secret": ...}}',
    )

    default_endpoint: Optional[str] = Field(
        None,
        description="Endpoint used when none can be resolved from the request (defaults to the first one)",
    )

    mydomain_suffix: str = Field(
        default=".my.salesforce.com",
        description="Canonical suffix of custom domains passed via the 'mydomain' parameter",
    )

    authorize_path: str = Field(default="/services/oauth2/authorize")

    token_path: str = Field(default="/services/oauth2/token")

    exchange_timeout: float = Field(default=10.0, gt=0, description="Token exchange timeout in seconds")

    # =========================================================================
    # Session Encryption
    # =========================================================================

    token_encryption_key: str = Field(
        ...,
        description="Operator supplied secret used to encrypt the session principal (16+ bytes)",
    )

    # =========================================================================
    # Routing
    # =========================================================================

    path_prefix: str = Field(default=DEFAULT_PATH_PREFIX)

    origin: Optional[str] = Field(
        None,
        description="Public base URL used to build the callback redirect_uri (e.g. https://app.example.com)",
    )

    # =========================================================================
    # Authorize Parameters
    # =========================================================================

    display: Optional[str] = None
    immediate: Optional[bool] = None
    prompt: Optional[str] = None
    scope: Optional[str] = None

    display_override: bool = False
    immediate_override: bool = False
    prompt_override: bool = False
    scope_override: bool = False

    # =========================================================================
    # Principal Defaults
    # =========================================================================

    api_version: str = Field(default="25.0")
    debugging: bool = False

    model_config = SettingsConfigDict(
        env_prefix="WEBFLOW_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        frozen=True,
    )

    # =========================================================================
    # Validators
    # =========================================================================

    @field_validator("endpoints", mode="before")
    @classmethod
    def sanitize_endpoints(cls, v: Any) -> Dict[str, Dict[str, str]]:
        """
        Drop endpoint entries that lack a non-empty key and secret.

        Identifiers are normalized to lower case so that lookups from
        request parameters are case-insensitive.
        """
        if not isinstance(v, dict):
            return {}

        sanitized: Dict[str, Dict[str, str]] = {}
        for name, value in v.items():
            if isinstance(value, EndpointCredentials):
                value = value.model_dump()
            if not (
                isinstance(name, str)
                and name.strip()
                and isinstance(value, dict)
                and isinstance(value.get("key"), str)
                and isinstance(value.get("secret"), str)
                and value["key"]
                and value["secret"]
            ):
                logger.warning(f"Ignoring invalid endpoint configuration for {name!r}")
                continue
            sanitized[name.strip().lower()] = {"key": value["key"], "secret": value["secret"]}
        return sanitized

    @field_validator("token_encryption_key")
    @classmethod
    def validate_encryption_key(cls, v: str) -> str:
        if len(v.encode("utf-8")) < MIN_ENCRYPTION_KEY_BYTES:
            raise ValueError(
                f"token_encryption_key must be at least {MIN_ENCRYPTION_KEY_BYTES} bytes long"
            )
        return v

    @field_validator("path_prefix", mode="before")
    @classmethod
    def normalize_path_prefix(cls, v: Any) -> str:
        if not isinstance(v, str) or not v.strip() or not v.strip().strip("/"):
            return DEFAULT_PATH_PREFIX
        return "/" + v.strip().strip("/")

    @field_validator("default_endpoint")
    @classmethod
    def normalize_default_endpoint(cls, v: Optional[str]) -> Optional[str]:
        if v is None or not v.strip():
            return None
        return v.strip().lower()

    @model_validator(mode="after")
    def check_endpoints(self) -> "FlowSettings":
        if not self.endpoints:
            raise ValueError("endpoints must contain at least one entry with a key and a secret")
        if self.default_endpoint is not None and self.default_endpoint not in self.endpoints:
            raise ValueError(f"default_endpoint {self.default_endpoint!r} is not a configured endpoint")
        return self

    # =========================================================================
    # Computed Properties
    # =========================================================================

    @property
    def default_endpoint_id(self) -> str:
        """Identifier of the endpoint used when nothing else resolves."""
        if self.default_endpoint is not None:
            return self.default_endpoint
        return next(iter(self.endpoints))

    @property
    def callback_path(self) -> str:
        return f"{self.path_prefix}/callback"

    @property
    def failure_path(self) -> str:
        return f"{self.path_prefix}/failure"


class AppSettings(BaseSettings):
    """Settings for the demo host application in ``webflow.main``."""

    session_secret: str = Field(
        ...,
        min_length=32,
        description="Secret used by Starlette's SessionMiddleware to sign the session cookie",
    )
    log_level: str = Field(default="INFO")
    host: str = Field(default="0.0.0.0")
    port: int = Field(default=8080, ge=1, le=65535)

    model_config = SettingsConfigDict(
        env_prefix="WEBFLOW_APP_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )


# =============================================================================
# Settings Loaders
# =============================================================================

_CONFIGURATION_HELP = (
    "webflow initialization error! Configure the middleware like this:\n\n"
    "    app.add_middleware(\n"
    "        WebServerFlowMiddleware,\n"
    '        endpoints={"login.salesforce.com": {"key": CLIENT_ID, "secret": CLIENT_SECRET}},\n'
    "        token_encryption_key=YOUR_VERY_LONG_VERY_RANDOM_SECRET_KEY,\n"
    "    )\n\n"
    "To generate a sufficiently long random key:\n\n"
    '    python -c "import secrets; print(secrets.token_urlsafe(32))"\n'
)


def build_settings(**options: Any) -> FlowSettings:
    """
    Build validated middleware settings from keyword options.

    Raises:
        ConfigurationError: If the endpoints or the encryption key are invalid.
    """
    try:
        return FlowSettings(**options)
    except ValidationError as e:
        problems = "; ".join(
            f"{'.'.join(str(part) for part in error['loc']) or 'settings'}: {error['msg']}"
            for error in e.errors()
        )
        raise ConfigurationError(f"{problems}\n\n{_CONFIGURATION_HELP}") from e


@lru_cache()
def get_settings() -> FlowSettings:
    """
    Load middleware settings from the environment once per process.

    Raises:
        ConfigurationError: If required variables are missing or invalid.
    """
    return build_settings()


@lru_cache()
def get_app_settings() -> AppSettings:
    return AppSettings()
