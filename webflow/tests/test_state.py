"""Relay state codec tests."""

import pytest

from webflow.auth.state import RelayState


class TestBuild:
    def test_absent_state_defaults_to_root(self):
        state = RelayState.build(None, "login.x.com")
        assert state.encode() == "/?endpoint=login.x.com"

    def test_endpoint_is_appended_after_caller_params(self):
        state = RelayState.build("/resource?user_name=tom", "login.x.com")
        assert state.encode() == "/resource?user_name=tom&endpoint=login.x.com"

    def test_caller_endpoint_is_overwritten_in_place(self):
        state = RelayState.build("/r?endpoint=evil.com&a=1&endpoint=other.com", "login.x.com")
        assert state.params == (("endpoint", "login.x.com"), ("a", "1"))

    def test_scheme_and_host_are_dropped(self):
        state = RelayState.parse("https://evil.example.com/landing?x=1#frag")
        assert state.finalize() == "/landing?x=1"

    def test_values_are_percent_encoded(self):
        state = RelayState.build("/search?q=a b&next=/home", "login.x.com")
        assert state.encode() == "/search?q=a%20b&next=/home&endpoint=login.x.com"


class TestExtract:
    def test_extract_endpoint(self):
        endpoint, remaining = RelayState.parse("/?endpoint=test.x.com").extract_endpoint()
        assert endpoint == "test.x.com"
        assert remaining.finalize() == "/"

    def test_missing_endpoint(self):
        endpoint, remaining = RelayState.parse("/dashboard?tab=2").extract_endpoint()
        assert endpoint is None
        assert remaining.finalize() == "/dashboard?tab=2"

    def test_finalize_has_no_bare_question_mark(self):
        _, remaining = RelayState.parse("/resource?endpoint=login.x.com").extract_endpoint()
        assert remaining.finalize() == "/resource"

    @pytest.mark.parametrize(
        "caller_state",
        [
            "/",
            "/resource?user_name=tom",
            "/a/b?z=1&a=2&z=3",
            "/report?empty=&name=J%C3%BCrgen",
        ],
    )
    def test_provider_round_trip(self, caller_state):
        sent = RelayState.build(caller_state, "test.x.com").encode()

        endpoint, remaining = RelayState.parse(sent).extract_endpoint()

        assert endpoint == "test.x.com"
        assert remaining.params == RelayState.parse(caller_state).params
        assert remaining.path == RelayState.parse(caller_state).path
