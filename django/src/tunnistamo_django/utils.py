from typing import Optional

from django.contrib.auth import BACKEND_SESSION_KEY, logout
from django.http import HttpRequest, HttpResponse
from django.shortcuts import redirect
from django.utils.cache import add_never_cache_headers
from django.utils.crypto import get_random_string
from django.utils.module_loading import import_string

from tunnistamo_common.hooks import RedirectUrlHooks

from ._common import build_oidc_client, get_callback_uri, logger
from .backends import TunnistamoAuthBackend
from .hooks import redirect_url_hooks
from .session import OidcSession


def is_user_authenticated_with_tunnistamo(request: HttpRequest) -> bool:
    if not request.user.is_authenticated:
        return False

    try:
        backend_session = request.session[BACKEND_SESSION_KEY]
    except KeyError:
        return False

    try:
        auth_backend = import_string(backend_session)
    except ImportError:
        logger.warning(
            "Failed to import auth backend specified in the session at BACKEND_SESSION_KEY. Signing the user out",
            exc_info=True,
        )
        logout(request)
        return False

    # The imported auth_backend is a CLASS TYPE, not an INSTANCE of it.
    return issubclass(auth_backend, TunnistamoAuthBackend)


def redirect_to_tunnistamo_login(
    request: HttpRequest,
    client_config,
    scope: str,
    prompt_none: bool = False,
    session: Optional[OidcSession] = None,
    hooks: RedirectUrlHooks = redirect_url_hooks,
) -> HttpResponse:
    """
    Starts a new login attempt and returns a redirect to the Tunnistamo authorization endpoint.

    The caller is responsible for saving the destination in the session.
    """

    if session is None:
        session = OidcSession(request)

    callback_uri = get_callback_uri(request, hooks)
    oidc_client = build_oidc_client(client_config, request, callback_uri)

    nonce = get_random_string(32)
    state = session.create_state_token(nonce, client_config.pk, prompt_none, callback_uri)

    authentication_url = oidc_client.get_authentication_url(scope, nonce, state, prompt_none)
    response = redirect(authentication_url)
    add_never_cache_headers(response)
    return response
