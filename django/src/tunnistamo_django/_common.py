import logging
from typing import Optional
from urllib.parse import urljoin

from django.conf import settings
from django.core.exceptions import ImproperlyConfigured
from django.http import HttpRequest
from django.shortcuts import resolve_url
from django.urls import reverse

from tunnistamo_common.client import OidcClient
from tunnistamo_common.hooks import RedirectUrlHooks

from ._consts import TUNNISTAMO_PLUGIN_ID

logger = logging.getLogger("tunnistamo_django")


def get_tunnistamo_clients():
    # Avoid circular imports
    from .models import OpenIdConnectClient

    return OpenIdConnectClient.objects.filter(plugin=TUNNISTAMO_PLUGIN_ID).order_by("pk")


def get_auto_login_client():
    """
    Returns the first Tunnistamo client with auto login enabled, or `None`.

    Only one such client is expected; the admin form refuses to enable auto login
    for a second one.
    """

    for client_config in get_tunnistamo_clients():
        if client_config.get_plugin().is_auto_login_enabled():
            return client_config
    return None


def get_login_client():
    client_config = get_auto_login_client() or get_tunnistamo_clients().first()
    if client_config is None:
        raise ImproperlyConfigured(
            "No Tunnistamo client has been configured.\n"
            "Use the Django admin or the 'manage.py tunnistamo_init' command to add one."
        )
    return client_config


def get_client(client_pk):
    """
    Returns the Tunnistamo client that started a login, or `None` if it has been removed since.
    """

    return get_tunnistamo_clients().filter(pk=client_pk).first()


def _absolute_url(request: Optional[HttpRequest], path: str) -> str:
    base_url = getattr(settings, "TUNNISTAMO_APP_BASE_URL", None)
    if base_url is not None:
        return urljoin(base_url, path)
    if request is None:
        raise ImproperlyConfigured("Set TUNNISTAMO_APP_BASE_URL to build absolute URLs outside of a request")
    return request.build_absolute_uri(path)


def get_callback_uri(request: Optional[HttpRequest], hooks: RedirectUrlHooks) -> str:
    """
    Returns the `redirect_uri` for a new login attempt, with the redirect URL hooks applied.

    The hooks run once per attempt, with the request that starts it. The result is stored
    in the session, so the callback view sends the same `redirect_uri` in the token request.
    """

    url = _absolute_url(request, reverse("tunnistamo_callback"))
    return hooks.apply(url, request)


def build_oidc_client(client_config, request: Optional[HttpRequest], callback_uri: str) -> OidcClient:
    return OidcClient(
        endpoints=client_config.get_plugin().get_endpoints(),
        client_id=client_config.client_id,
        client_secret=client_config.client_secret,
        callback_uri=callback_uri,
        # LOGOUT_REDIRECT_URL can also be a URL pattern name
        post_logout_redirect_uri=_absolute_url(request, resolve_url(settings.LOGOUT_REDIRECT_URL or "/")),
    )
