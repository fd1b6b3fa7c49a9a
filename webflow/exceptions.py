"""
Errors raised by the OAuth2 web-server flow.

Configuration errors abort startup. Provider and exchange errors are caught
at the flow boundary and turned into a failure redirect. Session errors are
only logged; the request continues anonymously.
"""


class WebFlowError(Exception):
    """Base exception for the web-server flow"""

    def __init__(self, message: str = ""):
        super().__init__(message)
        self.message = message


class ConfigurationError(WebFlowError):
    """Invalid endpoints or encryption key"""


class ProviderError(WebFlowError):
    """The identity provider reported an error on callback"""


class ExchangeError(WebFlowError):
    """Exchanging the authorization code for tokens failed"""


class SessionDecodeError(WebFlowError):
    """The stored session principal could not be decrypted or decoded"""


class StaleEndpointError(WebFlowError):
    """The stored session principal references an endpoint that is no longer configured"""
