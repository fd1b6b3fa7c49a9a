"""
Relay state carried through the identity provider round-trip.

The caller's ``state`` parameter (a path with optional query) is extended
with an ``endpoint`` parameter on authorize, so that the callback knows which
endpoint credentials to exchange the code with. On callback the parameter is
removed again and the remainder becomes the final redirect target.
"""

from dataclasses import dataclass, field
from typing import List, Optional, Tuple
from urllib.parse import parse_qsl, quote, urlencode, urlsplit

ENDPOINT_PARAM = "endpoint"


@dataclass(frozen=True)
class RelayState:
    """Path and ordered query parameters of a relay state."""

    path: str = "/"
    params: Tuple[Tuple[str, str], ...] = field(default_factory=tuple)

    @classmethod
    def parse(cls, value: Optional[str]) -> "RelayState":
        """
        Parse a relay state string.

        Only the path and query are kept, so the final redirect can never
        leave this application's origin.
        """
        if value is None or not value.strip():
            return cls()
        parts = urlsplit(value.strip())
        path = parts.path or "/"
        if not path.startswith("/"):
            path = "/" + path
        params = tuple(parse_qsl(parts.query, keep_blank_values=True))
        return cls(path=path, params=params)

    @classmethod
    def build(cls, caller_state: Optional[str], endpoint: str) -> "RelayState":
        """Parse the caller's state and merge the endpoint parameter into it."""
        return cls.parse(caller_state).with_param(ENDPOINT_PARAM, endpoint)

    def with_param(self, name: str, value: str) -> "RelayState":
        """
        Set a parameter, overwriting a caller-supplied one of the same name
        in place. Other parameters keep their order.
        """
        merged: List[Tuple[str, str]] = []
        replaced = False
        for key, existing in self.params:
            if key != name:
                merged.append((key, existing))
            elif not replaced:
                merged.append((name, value))
                replaced = True
        if not replaced:
            merged.append((name, value))
        return RelayState(path=self.path, params=tuple(merged))

    def extract_endpoint(self) -> Tuple[Optional[str], "RelayState"]:
        """Remove the endpoint parameter, returning it and the remaining state."""
        endpoint = None
        remaining = []
        for key, value in self.params:
            if key == ENDPOINT_PARAM:
                if endpoint is None:
                    endpoint = value
                continue
            remaining.append((key, value))
        return endpoint, RelayState(path=self.path, params=tuple(remaining))

    def finalize(self) -> str:
        """Render as a redirect target; no trailing '?' when there is no query."""
        query = urlencode(self.params, quote_via=quote, safe="/")
        if not query:
            return self.path
        return f"{self.path}?{query}"

    def encode(self) -> str:
        return self.finalize()

    def __str__(self) -> str:
        return self.encode()
