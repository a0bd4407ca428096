from django.conf import settings
from django.contrib.auth import authenticate, login
from django.contrib.auth.models import Group
from django.core.exceptions import ImproperlyConfigured
from django.db import transaction
from django.http import HttpRequest

from tunnistamo_common.tokens import Tokens

from ._common import logger
from ._consts import SESSION_TOKENS_SESSION_KEY

AD_GROUP_PREFIX = "ad."


def sync_ad_groups(user, claims: dict):
    """
    Mirror the `ad_groups` claim into Django groups prefixed with "ad.".

    Groups not starting with the prefix are left untouched, any "ad." group
    missing from the claim is removed from the user.
    Enabled with the `TUNNISTAMO_SYNC_AD_GROUPS` setting.
    """

    if not getattr(settings, "TUNNISTAMO_SYNC_AD_GROUPS", False):
        return
    if "ad_groups" not in claims:
        # The `ad_groups` scope was not requested, keep the current groups
        return

    with transaction.atomic():
        ad_groups = [
            Group.objects.get_or_create(name=f"{AD_GROUP_PREFIX}{name}")[0]
            for name in claims["ad_groups"]
        ]
        other_groups = list(user.groups.exclude(name__startswith=AD_GROUP_PREFIX))

        user.groups.set(ad_groups + other_groups)


def update_session(request: HttpRequest, tokens: Tokens, client_pk: int):
    request.session[SESSION_TOKENS_SESSION_KEY] = {
        "client": client_pk,
        "access_token": tokens.access_token,
        "refresh_token": tokens.refresh_token,
        "id_token": tokens.id_token,
        "access_expires_at": tokens.access_expires_at.isoformat(),
    }


def login_with_tunnistamo_backend(request: HttpRequest, tokens: Tokens, userinfo: dict, client_pk: int):
    # The userinfo response can contain claims missing from the ID token, like `ad_groups`
    claims = {**tokens.id_token_claims, **userinfo}
    user = authenticate(request, tunnistamo_claims=claims)
    if user is None:
        raise ImproperlyConfigured(
            "Failed to authenticate user. Is the `TunnistamoAuthBackend` enabled?"
        )

    login(request, user)
    update_session(request, tokens, client_pk)
    logger.info("User %s signed in using Tunnistamo", user.get_username())
    return user
