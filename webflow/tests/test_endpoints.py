"""
Endpoint resolution and URL utility tests.
"""

import pytest
from starlette.datastructures import QueryParams

from webflow.auth.endpoints import EndpointResolver, authorize_params
from webflow.auth.utils import param_repeated, parse_domain, sanitize_mydomain


@pytest.fixture
def resolver(settings):
    return EndpointResolver(settings)


class TestEndpointResolver:
    def test_unset_endpoint_yields_default_credentials(self, resolver):
        assert resolver.lookup(None).key == "K1"
        assert resolver.lookup(None).secret == "S1"

    def test_known_endpoint(self, resolver):
        assert resolver.lookup("test.x.com").key == "K2"
        assert resolver.lookup("TEST.x.com ").secret == "S2"

    def test_unknown_endpoint_degrades_to_default(self, resolver):
        assert resolver.resolve_id("evil.example.com") == "login.x.com"
        assert resolver.lookup("evil.example.com").key == "K1"
        assert resolver.get("evil.example.com") is None

    def test_explicit_default(self, make_settings):
        resolver = EndpointResolver(make_settings(default_endpoint="test.x.com"))
        assert resolver.lookup(None).key == "K2"

    def test_resolve_without_mydomain(self, resolver):
        resolved = resolver.resolve("test.x.com", None)
        assert resolved.endpoint == "test.x.com"
        assert resolved.site == "test.x.com"
        assert resolved.credentials.key == "K2"

    def test_mydomain_only_changes_the_site(self, resolver):
        resolved = resolver.resolve(None, "acme")
        assert resolved.site == "acme.my.x.com"
        assert resolved.endpoint == "login.x.com"
        assert resolved.credentials.key == "K1"


class TestAuthorizeParams:
    @pytest.fixture
    def build_params(self, make_settings):
        def build(url, **overrides):
            settings = make_settings(**overrides)
            query = QueryParams(url.partition("?")[2])
            return authorize_params(settings, url, query, redirect_uri="http://app/cb", state="/?endpoint=login.x.com")

        return build

    def test_required_params(self, build_params):
        params = build_params("http://app/auth/provider")
        assert params == {"redirect_uri": "http://app/cb", "state": "/?endpoint=login.x.com"}

    def test_static_params(self, build_params):
        params = build_params(
            "http://app/auth/provider?display=page",
            display="touch",
            immediate=True,
            prompt="login consent",
            scope="full",
        )
        assert params["display"] == "touch"
        assert params["immediate"] == "true"
        assert params["prompt"] == "login consent"
        assert params["scope"] == "full"

    def test_blank_static_scope_is_skipped(self, build_params):
        assert "scope" not in build_params("http://app/auth/provider", scope="  ")

    def test_overrides(self, build_params):
        params = build_params(
            "http://app/auth/provider?display=popup&immediate=false&prompt=login&scope=api&prompt=consent&scope=web",
            display="touch",
            display_override=True,
            immediate_override=True,
            prompt_override=True,
            scope_override=True,
        )
        assert params["display"] == "popup"
        assert params["immediate"] == "false"
        assert params["prompt"] == "login consent"
        assert params["scope"] == "api web"

    def test_override_disabled_keeps_static_value(self, build_params):
        params = build_params("http://app/auth/provider?prompt=login", prompt="consent")
        assert params["prompt"] == "consent"

    def test_blank_override_keeps_static_value(self, build_params):
        params = build_params("http://app/auth/provider?prompt=", prompt="consent", prompt_override=True)
        assert params["prompt"] == "consent"


class TestParseDomain:
    @pytest.mark.parametrize(
        "url, expected",
        [
            ("http://my.domain/some/path", "my.domain"),
            ("https://my.domain/some/path", "my.domain"),
            ("my.domain/some/path", "my.domain"),
            ("/invalid/url", None),
            ("", None),
            (None, None),
        ],
    )
    def test_parse_domain(self, url, expected):
        assert parse_domain(url) == expected

    @pytest.mark.parametrize(
        "mydomain, expected",
        [
            ("acme", "acme.my.x.com"),
            ("acme.my.x.com", "acme.my.x.com"),
            ("https://acme.my.x.com/home", "acme.my.x.com"),
            ("", None),
        ],
    )
    def test_sanitize_mydomain(self, mydomain, expected):
        assert sanitize_mydomain(mydomain, ".my.x.com") == expected

    def test_param_repeated(self):
        url = "http://app/auth?prompt=login&x=1&prompt=consent"
        assert param_repeated(url, "prompt") == ["login", "consent"]
        assert param_repeated(url, "scope") == []
        assert param_repeated("", "prompt") is None
