from datetime import datetime, UTC, timedelta
from unittest.mock import patch
from urllib.parse import urlencode

from authlib.integrations.requests_client import OAuth2Session
from django.contrib.auth.models import Group, User
from django.core.exceptions import ImproperlyConfigured
from django.test import TestCase, override_settings

from tunnistamo_common.client import OidcClient
from tunnistamo_common.errors import OidcProviderError, OidcValidationError
from tunnistamo_common.tokens import Tokens
from tunnistamo_django._consts import SESSION_TOKENS_SESSION_KEY, STATE_SESSION_KEY
from tunnistamo_django.hooks import redirect_url_hooks
from tunnistamo_django.models import TunnistamoUser
from tunnistamo_django.views import add_error_to_url
from tests.tools import make_client, query_of

SUB = "9d4f7c62-2c6c-4a4b-9d5c-1f0e3c6a1b2c"


def make_tokens(**claims):
    id_token_claims = {"sub": SUB, "email": "matti.meikalainen@hel.fi", **claims}
    return Tokens(
        access_token="access",
        id_token="id-token",
        id_token_claims=id_token_claims,
        access_expires_at=datetime.now(UTC) + timedelta(hours=1),
        refresh_token=None,
        raw_response={},
    )


class AddErrorToUrlTests(TestCase):
    def test_error_is_appended(self):
        self.assertEqual(add_error_to_url("/page/?a=1", "login_required"), "/page/?a=1&error=login_required")

    def test_existing_error_is_replaced(self):
        self.assertEqual(add_error_to_url("/page/?error=x#top", "access_denied"), "/page/?error=access_denied#top")


class LoginViewTests(TestCase):
    def test_redirects_to_tunnistamo(self):
        make_client(auto_login=False)

        response = self.client.get("/oidc/login/", {"next": "/page/"})

        self.assertEqual(response.status_code, 302)
        self.assertTrue(response.url.startswith("https://api.hel.fi/sso-test/openid/authorize/?"))
        self.assertNotIn("prompt", query_of(response.url))
        self.assertEqual(self.client.session["tunnistamo_destination"], "/page/")

    def test_unsafe_next_url(self):
        make_client()

        self.client.get("/oidc/login/", {"next": "https://evil.example.com/"})

        self.assertEqual(self.client.session["tunnistamo_destination"], "/")

    def test_authenticated_user(self):
        self.client.force_login(User.objects.create_user("matti"))

        response = self.client.get("/oidc/login/", {"next": "/page/"})

        self.assertRedirects(response, "/page/", fetch_redirect_response=False)

    def test_without_clients(self):
        with self.assertRaises(ImproperlyConfigured):
            self.client.get("/oidc/login/")


class CallbackViewTests(TestCase):
    def setUp(self):
        self.client_config = make_client()

    def _start_login(self, next_url="/page/"):
        self.client.get("/oidc/login/", {"next": next_url})
        return self.client.session[STATE_SESSION_KEY]["state"]

    def _callback(self, tokens=None, userinfo=None, exchange_error=None, **params):
        with (
            patch.object(OidcClient, "exchange_code_for_tokens", return_value=tokens, side_effect=exchange_error) as exchange,
            patch.object(OidcClient, "fetch_userinfo", return_value=userinfo or {"sub": SUB}),
        ):
            response = self.client.get("/oidc/callback/", params)
        return response, exchange

    def test_successful_login(self):
        state = self._start_login()
        nonce = self.client.session[STATE_SESSION_KEY]["nonce"]

        response, exchange = self._callback(
            tokens=make_tokens(given_name="Matti"),
            userinfo={"sub": SUB, "family_name": "Meikäläinen"},
            code="the-code",
            state=state,
        )

        self.assertRedirects(response, "/page/", fetch_redirect_response=False)
        exchange.assert_called_once_with(code="the-code", expected_nonce=nonce)
        user = TunnistamoUser.objects.get(sub=SUB).user
        self.assertEqual(user.email, "matti.meikalainen@hel.fi")
        self.assertEqual(user.get_full_name(), "Matti Meikäläinen")
        self.assertEqual(int(self.client.session["_auth_user_id"]), user.pk)
        self.assertEqual(self.client.session[SESSION_TOKENS_SESSION_KEY]["client"], self.client_config.pk)
        self.assertNotIn(STATE_SESSION_KEY, self.client.session)

    def test_existing_user_is_linked_by_email(self):
        user = User.objects.create_user("matti", email="Matti.Meikalainen@hel.fi")
        state = self._start_login()

        self._callback(tokens=make_tokens(), code="the-code", state=state)

        self.assertEqual(TunnistamoUser.objects.get(sub=SUB).user, user)

    @override_settings(TUNNISTAMO_SYNC_AD_GROUPS=True)
    def test_ad_groups_are_synced(self):
        user = User.objects.create_user("matti", email="matti.meikalainen@hel.fi")
        user.groups.add(Group.objects.create(name="editors"), Group.objects.create(name="ad.old"))
        state = self._start_login()

        self._callback(
            tokens=make_tokens(),
            userinfo={"sub": SUB, "ad_groups": ["helsinki1_kaikki"]},
            code="the-code",
            state=state,
        )

        self.assertEqual(
            sorted(user.groups.values_list("name", flat=True)),
            ["ad.helsinki1_kaikki", "editors"],
        )

    def test_silent_login_without_session_at_tunnistamo(self):
        make_client(client_id="unused", auto_login=False)
        self.client.get("/restricted/", headers={"Sec-Fetch-Dest": "iframe"})
        state = self.client.session[STATE_SESSION_KEY]["state"]

        response, exchange = self._callback(error="login_required", state=state)

        self.assertRedirects(response, "/restricted/?error=login_required", fetch_redirect_response=False)
        exchange.assert_not_called()
        # The error parameter stops the auto login from trying again
        self.assertEqual(self.client.get(response.url).status_code, 403)

    def test_unknown_state(self):
        self._start_login()

        response, exchange = self._callback(code="the-code", state="forged")

        self.assertEqual(response.status_code, 400)
        exchange.assert_not_called()
        self.assertNotIn(STATE_SESSION_KEY, self.client.session)

    def test_token_exchange_error(self):
        state = self._start_login()

        response, _exchange = self._callback(
            exchange_error=OidcProviderError({"error": "invalid_grant", "error_description": "Code has expired"}),
            code="the-code",
            state=state,
        )

        self.assertEqual(response.status_code, 500)
        self.assertContains(response, "Code has expired", status_code=500)
        self.assertNotIn("_auth_user_id", self.client.session)

    def test_invalid_id_token(self):
        state = self._start_login()

        response, _exchange = self._callback(
            exchange_error=OidcValidationError("nonce mismatch"),
            code="the-code",
            state=state,
        )

        self.assertContains(response, "Authentication failed", status_code=500)

    def test_removed_client(self):
        state = self._start_login()
        self.client_config.delete()

        response, _exchange = self._callback(code="the-code", state=state)

        self.assertEqual(response.status_code, 500)

    def test_token_request_repeats_the_authorization_redirect_uri(self):
        def add_origin(url, request):
            return url + "?" + urlencode({"from": request.path})

        redirect_url_hooks.register(add_origin)
        self.addCleanup(redirect_url_hooks.unregister, add_origin)

        response = self.client.get("/restricted/")
        state = self.client.session[STATE_SESSION_KEY]["state"]
        authorization_redirect_uri = query_of(response.url)["redirect_uri"]

        with patch.object(OAuth2Session, "fetch_token", return_value={"access_token": "access"}) as fetch_token:
            self.client.get("/oidc/callback/", {"code": "the-code", "state": state})

        self.assertEqual(authorization_redirect_uri, "http://testserver/oidc/callback/?from=%2Frestricted%2F")
        self.assertEqual(fetch_token.call_args.kwargs["redirect_uri"], authorization_redirect_uri)

    @override_settings(LOGIN_REDIRECT_URL="public_page")
    def test_error_is_added_to_the_login_redirect_url(self):
        self.client.get("/oidc/login/")
        state = self.client.session[STATE_SESSION_KEY]["state"]

        response, _exchange = self._callback(error="access_denied", state=state)

        self.assertRedirects(response, "/public/?error=access_denied", fetch_redirect_response=False)


class LogoutViewTests(TestCase):
    def _login_with_tunnistamo(self):
        make_client()
        self.client.get("/oidc/login/")
        state = self.client.session[STATE_SESSION_KEY]["state"]
        with (
            patch.object(OidcClient, "exchange_code_for_tokens", return_value=make_tokens()),
            patch.object(OidcClient, "fetch_userinfo", return_value={"sub": SUB}),
        ):
            self.client.get("/oidc/callback/", {"code": "the-code", "state": state})

    def test_tunnistamo_user_is_logged_out_at_tunnistamo(self):
        self._login_with_tunnistamo()

        response = self.client.post("/oidc/logout/")

        self.assertEqual(response.status_code, 302)
        self.assertTrue(response.url.startswith("https://api.hel.fi/sso-test/openid/end-session/?"))
        query = query_of(response.url)
        self.assertEqual(query["id_token_hint"], "id-token")
        self.assertEqual(query["post_logout_redirect_uri"], "http://testserver/")
        self.assertNotIn("_auth_user_id", self.client.session)

    @override_settings(LOGOUT_REDIRECT_URL="public_page")
    def test_logout_redirect_url_pattern_name(self):
        self._login_with_tunnistamo()

        response = self.client.post("/oidc/logout/")

        self.assertEqual(query_of(response.url)["post_logout_redirect_uri"], "http://testserver/public/")

    def test_other_users_are_logged_out_locally(self):
        self.client.force_login(User.objects.create_user("matti"), backend="django.contrib.auth.backends.ModelBackend")

        response = self.client.post("/oidc/logout/")

        self.assertRedirects(response, "/", fetch_redirect_response=False)
        self.assertNotIn("_auth_user_id", self.client.session)

    def test_get_is_not_allowed(self):
        self.assertEqual(self.client.get("/oidc/logout/").status_code, 405)
