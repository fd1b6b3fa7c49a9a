"""Request classification for the web-server flow."""

from enum import Enum


class Phase(str, Enum):
    AUTHORIZE = "authorize"
    CALLBACK = "callback"
    PASS_THROUGH = "pass_through"


class PathRouter:
    """
    Classifies request paths against the configured prefix.

    ``<prefix>`` is the authorize path and ``<prefix>/callback`` the callback
    path. Matching is exact and case-insensitive, ignoring one trailing slash.
    """

    def __init__(self, path_prefix: str):
        self.authorize_path = path_prefix.lower()
        self.callback_path = f"{self.authorize_path}/callback"

    def classify(self, path: str) -> Phase:
        current = _normalize(path)
        if current == self.authorize_path:
            return Phase.AUTHORIZE
        if current == self.callback_path:
            return Phase.CALLBACK
        return Phase.PASS_THROUGH


def _normalize(path: str) -> str:
    path = path.lower()
    if path.endswith("/"):
        path = path[:-1]
    return path
