"""
Tests for the route gate: policy table, per-request decisions, and the
full redirect flow through the app.
"""

from datetime import datetime, timezone

import pytest

from lexaccess.auth.tokens import TokenCodec
from lexaccess.gate import RouteClass, RouteGate, RoutePolicy, load_route_policy

from conftest import TEST_SECRET


@pytest.fixture
def policy():
    return load_route_policy()


@pytest.fixture
def gate(policy, codec):
    return RouteGate(policy, codec, sign_in_path="/auth")


class BrokenCodec:
    def verify(self, token):
        raise RuntimeError("key store unavailable")


# =============================================================================
# Policy table
# =============================================================================


class TestRoutePolicy:
    @pytest.mark.parametrize("path, expected", [
        ("/", RouteClass.PUBLIC),
        ("/auth", RouteClass.PUBLIC),
        ("/vkyc", RouteClass.AUTH_REQUIRED),
        ("/chatbot", RouteClass.AUTH_AND_VERIFICATION_REQUIRED),
        ("/library", RouteClass.AUTH_AND_VERIFICATION_REQUIRED),
        ("/library/contracts/42", RouteClass.AUTH_AND_VERIFICATION_REQUIRED),
        ("/consult", RouteClass.AUTH_AND_VERIFICATION_REQUIRED),
        ("/document-processor", RouteClass.AUTH_AND_VERIFICATION_REQUIRED),
        ("/publish-report", RouteClass.AUTH_AND_VERIFICATION_REQUIRED),
        ("/profile/", RouteClass.AUTH_AND_VERIFICATION_REQUIRED),
        ("/api/auth/login", RouteClass.EXEMPT),
        ("/api", RouteClass.EXEMPT),
        ("/about", RouteClass.PUBLIC),
    ])
    def test_default_table(self, policy, path, expected):
        assert policy.classify(path) == expected

    def test_prefix_is_segment_aware(self, policy):
        assert policy.classify("/libraryx") == RouteClass.PUBLIC
        assert policy.classify("/apix") == RouteClass.PUBLIC

    def test_exact_does_not_match_children(self, policy):
        assert policy.classify("/auth/callback") == RouteClass.PUBLIC

    def test_first_match_wins(self):
        policy = RoutePolicy.from_dict({
            "rules": [
                {"pattern": "/docs/public", "match": "prefix", "access": "public"},
                {"pattern": "/docs", "match": "prefix", "access": "auth"},
            ],
        })
        assert policy.classify("/docs/public/faq") == RouteClass.PUBLIC
        assert policy.classify("/docs/private") == RouteClass.AUTH_REQUIRED

    def test_load_from_file(self, tmp_path):
        path = tmp_path / "routes.yaml"
        path.write_text(
            "default: auth\n"
            "rules:\n"
            "  - pattern: /\n"
            "    match: exact\n"
            "    access: public\n"
        )
        policy = load_route_policy(path)

        assert policy.classify("/") == RouteClass.PUBLIC
        assert policy.classify("/anything") == RouteClass.AUTH_REQUIRED

    def test_unknown_access_class(self):
        with pytest.raises(ValueError):
            RoutePolicy.from_dict({"rules": [{"pattern": "/x", "access": "vip"}]})


# =============================================================================
# Gate decisions
# =============================================================================


class TestRouteGate:
    def test_public_route_without_token(self, gate):
        assert gate.evaluate("/", None).allowed

    def test_exempt_route_ignores_bad_token(self, gate):
        assert gate.evaluate("/api/auth/session", "garbage").allowed

    def test_no_token(self, gate):
        decision = gate.evaluate("/library", None)

        assert not decision.allowed
        assert decision.redirect_to == "/auth"
        assert decision.clear_cookie is False

    def test_invalid_token_clears_cookie(self, gate):
        decision = gate.evaluate("/library", "garbage")

        assert not decision.allowed
        assert decision.redirect_to == "/auth"
        assert decision.clear_cookie is True
        assert decision.reason == "token invalid"

    def test_expired_token_clears_cookie(self, gate, codec, clock):
        token = codec.issue("user_1", "ada@example.com")
        clock.advance(days=8)

        decision = gate.evaluate("/vkyc", token)

        assert not decision.allowed
        assert decision.clear_cookie is True
        assert decision.reason == "token expired"

    def test_valid_token(self, gate, codec):
        decision = gate.evaluate("/library", codec.issue("user_1", "ada@example.com"))
        assert decision.allowed

    def test_fails_closed_on_unexpected_error(self, policy):
        gate = RouteGate(policy, BrokenCodec(), sign_in_path="/auth")

        decision = gate.evaluate("/library", "any-token")

        assert not decision.allowed
        assert decision.redirect_to == "/auth"
        assert decision.clear_cookie is True


# =============================================================================
# Through the app
# =============================================================================


class TestGateFlow:
    def test_public_page(self, http):
        assert http.get("/").status_code == 200

    def test_no_cookie_redirects_to_sign_in(self, http):
        response = http.get("/library")

        assert response.status_code == 303
        assert response.headers["location"] == "/auth"
        assert "set-cookie" not in response.headers

    def test_tampered_cookie_redirects_and_clears(self, http):
        http.cookies.set("auth-token", "tampered.token.value")

        response = http.get("/chatbot")

        assert response.status_code == 303
        assert response.headers["location"] == "/auth"
        set_cookie = response.headers["set-cookie"]
        assert set_cookie.startswith("auth-token=")
        assert "Max-Age=0" in set_cookie

    def test_expired_cookie_redirects_and_clears(self, http):
        stale = TokenCodec(TEST_SECRET, clock=lambda: datetime(2020, 1, 1, tzinfo=timezone.utc))
        http.cookies.set("auth-token", stale.issue("user_1", "ada@example.com"))

        response = http.get("/consult")

        assert response.status_code == 303
        assert "Max-Age=0" in response.headers["set-cookie"]

    def test_unverified_principal_sent_to_verification(self, http, register):
        register()

        response = http.get("/library")

        assert response.status_code == 303
        assert response.headers["location"] == "/vkyc"

    def test_verification_page_needs_only_a_session(self, http, register):
        assert http.get("/vkyc").status_code == 303

        register()
        assert http.get("/vkyc").status_code == 200

    def test_verified_principal_reaches_feature_pages(self, http, register):
        register()
        completed = http.post("/api/vkyc/complete", json={"profileData": {"phone": "+44 20 7946 0000"}})
        assert completed.status_code == 200

        for path in ("/chatbot", "/library", "/consult", "/document-processor", "/publish-report", "/profile"):
            assert http.get(path).status_code == 200, path

    def test_completed_flag_with_missing_field_is_not_verified(self, http, register):
        user_id = register(phone="+44 20 7946 0000").json()["session"]["id"]
        assert http.post("/api/vkyc/complete", json={}).status_code == 200
        assert http.get("/library").status_code == 200

        # Written straight to the store, so nothing resets the completed flag
        profiles = http.app.state.storage.profiles
        http.portal.call(profiles.update, user_id, {"phone": ""})

        response = http.get("/library")
        assert response.status_code == 303
        assert response.headers["location"] == "/vkyc"

    def test_api_is_not_redirected(self, http):
        http.cookies.set("auth-token", "tampered.token.value")

        response = http.get("/api/vkyc/status")

        assert response.status_code == 401
        assert response.json() == {"error": "Unauthorized"}
