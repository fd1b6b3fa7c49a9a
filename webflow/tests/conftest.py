"""Shared fixtures for the webflow test suite."""

import json
from typing import Any, Dict, List
from unittest.mock import AsyncMock, Mock

import pytest
from cryptography.fernet import Fernet
from fastapi import FastAPI, Request
from fastapi.testclient import TestClient

from webflow.auth.endpoints import EndpointResolver
from webflow.auth.flow import WebServerFlowMiddleware
from webflow.auth.session import SessionCodec, derive_fernet_key
from webflow.config import build_settings
from webflow.models import TokenGrant

TOKEN_ENCRYPTION_KEY = "9rg/hsK8ZSi+jc8R40ruJQ=="

ENDPOINTS = {
    "login.x.com": {"key": "K1", "secret": "S1"},
    "test.x.com": {"key": "K2", "secret": "S2"},
}


class DictSessionMiddleware:
    """Attaches a plain dict as the session so tests can inspect the slot."""

    def __init__(self, app, store: Dict[str, Any]):
        self.app = app
        self.store = store

    async def __call__(self, scope, receive, send):
        if scope["type"] == "http":
            scope["session"] = self.store
        await self.app(scope, receive, send)


def _build_settings(**overrides):
    options = {
        "endpoints": ENDPOINTS,
        "token_encryption_key": TOKEN_ENCRYPTION_KEY,
        "mydomain_suffix": ".my.x.com",
    }
    options.update(overrides)
    return build_settings(**options)


def _build_codec(settings=None) -> SessionCodec:
    settings = settings or _build_settings()
    return SessionCodec(settings, EndpointResolver(settings))


def _decrypt_raw(blob: str) -> Dict[str, Any]:
    fernet = Fernet(derive_fernet_key(TOKEN_ENCRYPTION_KEY))
    return json.loads(fernet.decrypt(blob))


@pytest.fixture
def encryption_key():
    return TOKEN_ENCRYPTION_KEY


@pytest.fixture
def endpoint_config():
    """Raw endpoints option: two endpoints, no explicit default"""
    return {name: dict(credentials) for name, credentials in ENDPOINTS.items()}


@pytest.fixture
def make_settings():
    """Factory for validated settings on top of the test defaults"""
    return _build_settings


@pytest.fixture
def make_codec():
    return _build_codec


@pytest.fixture
def decrypt_raw():
    """Decrypt a session blob without the codec's post-processing"""
    return _decrypt_raw


@pytest.fixture
def settings():
    return _build_settings()


@pytest.fixture
def codec(settings):
    return _build_codec(settings)


@pytest.fixture
def token_grant():
    return TokenGrant(
        access_token="mock-access-token",
        refresh_token="mock-refresh-token",
        id_url="https://login.x.com/id/00Dorg/005user",
        instance_url="https://na1.x.com",
    )


@pytest.fixture
def mock_exchanger(token_grant):
    """Token exchange collaborator returning a fixed grant"""
    exchanger = Mock()
    exchanger.exchange = AsyncMock(return_value=token_grant)
    return exchanger


class FlowHarness:
    """A FastAPI app behind the middleware plus the objects tests inspect."""

    def __init__(self, mock_exchanger, on_failure=None, **overrides):
        self.settings = _build_settings(**overrides)
        self.codec = _build_codec(self.settings)
        self.exchanger = mock_exchanger
        self.store: Dict[str, Any] = {}
        self.seen: List[Any] = []
        self.intercepted_calls = 0

        app = FastAPI()

        @app.get("/resources")
        async def resources(request: Request):
            principal = request.state.principal
            self.seen.append(principal.model_copy() if principal is not None else None)
            return {"ok": True}

        @app.get("/mutate")
        async def mutate(request: Request):
            principal = request.state.principal
            principal.instance_url = "https://na2.x.com"
            principal.username = "sales king"
            return {"ok": True}

        @app.get("/logout")
        async def logout(request: Request):
            request.state.principal.logout()
            return {"ok": True}

        @app.get(self.settings.path_prefix)
        @app.get(self.settings.callback_path)
        async def intercepted():
            self.intercepted_calls += 1
            return {"ok": True}

        app.add_middleware(
            WebServerFlowMiddleware,
            settings=self.settings,
            exchanger=self.exchanger,
            on_failure=on_failure,
        )
        app.add_middleware(DictSessionMiddleware, store=self.store)
        self.app = app
        self.client = TestClient(app)

    def get(self, url: str, **kwargs):
        return self.client.get(url, follow_redirects=False, **kwargs)


@pytest.fixture
def make_harness(mock_exchanger):
    def factory(**overrides):
        return FlowHarness(mock_exchanger, **overrides)

    return factory


@pytest.fixture
def harness(make_harness):
    return make_harness()
