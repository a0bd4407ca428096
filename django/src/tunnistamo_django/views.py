from typing import Optional
from urllib.parse import parse_qsl, urlencode, urlsplit, urlunsplit

from django.conf import settings
from django.contrib.auth import logout
from django.http import HttpRequest, HttpResponse
from django.shortcuts import redirect, resolve_url
from django.utils.cache import add_never_cache_headers
from django.utils.decorators import method_decorator
from django.utils.html import format_html
from django.utils.http import url_has_allowed_host_and_scheme
from django.views.decorators.cache import never_cache
from django.views.generic.base import View

from tunnistamo_common.errors import OidcError, OidcProviderError

from ._common import build_oidc_client, get_client, get_login_client, logger
from ._consts import SESSION_TOKENS_SESSION_KEY
from ._user_sessions import login_with_tunnistamo_backend
from .session import OidcSession
from .utils import is_user_authenticated_with_tunnistamo, redirect_to_tunnistamo_login


def add_error_to_url(url: str, error: str) -> str:
    """
    Appends the `error` query parameter to `url`, replacing an existing one.
    The auto login middleware will not redirect again from a URL with this parameter.
    """

    scheme, netloc, path, query, fragment = urlsplit(url)
    params = [(key, value) for key, value in parse_qsl(query, keep_blank_values=True) if key != "error"]
    params.append(("error", error))
    return urlunsplit((scheme, netloc, path, urlencode(params), fragment))


class LoginView(View):
    """
    Redirects the user to the Tunnistamo login page.

    Authenticated users are redirected to the URL in the `next` query param
    or to `LOGIN_REDIRECT_URL`.
    """

    def _get_next_url(self, request):
        next_url = resolve_url(settings.LOGIN_REDIRECT_URL)

        if "next" in request.GET:
            next_url_is_valid = url_has_allowed_host_and_scheme(
                request.GET["next"],
                allowed_hosts={request.get_host()},
                require_https=request.is_secure(),
            )
            if next_url_is_valid:
                next_url = request.GET["next"]
            else:
                logger.warning(
                    "Received an invalid next URL in the login request: %s", request.GET["next"]
                )

        return next_url

    def get(self, request):
        next_url = self._get_next_url(request)

        if request.user.is_authenticated:
            response = redirect(next_url)
            add_never_cache_headers(response)
            return response

        client_config = get_login_client()
        session = OidcSession(request)
        scope = " ".join(client_config.get_plugin().get_client_scopes())
        response = redirect_to_tunnistamo_login(request, client_config, scope, session=session)
        session.save_destination(next_url)
        return response


# Apply the never cache `Cache-Control` header values to avoid browser and proxy caches
# from caching the success redirect.
@method_decorator(never_cache, name="dispatch")
class CallbackView(View):
    def _display_login_error(self, description: Optional[str] = None, status: int = 500):
        description = description or "Authentication failed"
        # TODO: Replace with a customizable template
        body = format_html("<h1>Login failed</h1><p>{}</p>", description)
        return HttpResponse(body, status=status)

    def _handle_provider_error(self, session: OidcSession, state_entry: dict, error: OidcProviderError):
        if state_entry["prompt_none"] and error.error in ("login_required", "interaction_required"):
            # These errors are expected when `prompt=none` is used,
            # they just indicate that the user has no session at Tunnistamo.
            logger.debug("Silent authentication ended with %s", error.error)
        else:
            logger.error(
                "Received error %s in the CallbackView:\nDescription: %s",
                error.error,
                error.response.get("error_description"),
            )

        # The destination gets the `error` parameter so the auto login does not retry
        return redirect(add_error_to_url(session.retrieve_destination(), error.error))

    def get(self, request: HttpRequest):
        session = OidcSession(request)

        state_entry = session.pop_state_entry(request.GET.get("state"))
        if state_entry is None:
            # This message is intended to be shown to the user, the missing session information is not
            # an indication of an attack by itself.
            return self._display_login_error(
                "Failed to get session info necessary to complete authentication in the session.\n"
                "Make sure to enable cookies for this app before retrying",
                status=400,
            )

        client_config = get_client(state_entry["client"])
        if client_config is None:
            logger.error("The Tunnistamo client %s used for the login no longer exists", state_entry["client"])
            return self._display_login_error("Authentication failed")

        # The token request must repeat the `redirect_uri` of the authorization request
        oidc_client = build_oidc_client(client_config, request, state_entry["callback_uri"])

        try:
            authorization_response = oidc_client.parse_authorization_callback_response(request.GET)
            tokens = oidc_client.exchange_code_for_tokens(
                code=authorization_response["code"],
                expected_nonce=state_entry["nonce"],
            )
            userinfo = oidc_client.fetch_userinfo(tokens.access_token, expected_sub=tokens.id_token_claims["sub"])
        except OidcProviderError as error:
            if "code" not in request.GET:
                return self._handle_provider_error(session, state_entry, error)

            logger.error(
                "Failed to exchange code for tokens in the CallbackView.\n"
                "Error code %s, description: %s",
                error.error,
                error.response.get("error_description"),
            )
            return self._display_login_error(error.response.get("error_description"))
        except OidcError as error:
            logger.error("Got an error in the CallbackView:", exc_info=error)
            return self._display_login_error("Authentication failed")

        destination = session.retrieve_destination()
        login_with_tunnistamo_backend(request, tokens, userinfo, client_config.pk)
        return redirect(destination)


class LogoutView(View):
    # Only POST is allowed and CSRF protection is not disabled to avoid CSRF redirects
    # from signing the user out from this app and Tunnistamo.
    def post(self, request):
        session_tokens = request.session.get(SESSION_TOKENS_SESSION_KEY, {})
        authenticated_with_tunnistamo = is_user_authenticated_with_tunnistamo(request)

        # `logout` also clears the session, so the session is read before calling `logout`.
        logout(request)

        client_config = get_client(session_tokens.get("client"))
        if not authenticated_with_tunnistamo or client_config is None:
            return redirect(settings.LOGOUT_REDIRECT_URL or "/")

        oidc_client = build_oidc_client(client_config, request, callback_uri="")
        response = redirect(oidc_client.get_logout_url(session_tokens.get("id_token")))
        add_never_cache_headers(response)
        return response
