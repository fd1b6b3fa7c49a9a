"""
Authentication Package

This package implements the OAuth2 Authorization Code Grant as a
request-interception layer in front of a Starlette/FastAPI application.

Modules:
- paths: classifies requests as authorize, callback, or pass-through
- state: relay state carried through the provider round-trip
- endpoints: selects the configured endpoint and its credentials
- session: encrypted session representation of the principal
- exchange: authorization code to token exchange over HTTP
- failure: failure redirect / custom failure handler
- flow: the middleware tying the above together
- helpers: request helpers and FastAPI dependencies for host apps

The authentication flow:
1. Client is sent to <prefix> (optionally with endpoint, mydomain, state)
2. Middleware redirects to the provider's authorize page
3. Provider redirects back to <prefix>/callback with a code
4. Middleware exchanges the code, stores the principal in the session
5. Middleware redirects to the original destination from the relay state
"""
