from django.contrib.auth import get_user_model
from django.contrib.auth.backends import BaseBackend
from django.core.exceptions import SuspiciousOperation

from ._common import logger
from ._user_sessions import sync_ad_groups
from .models import TunnistamoUser


class TunnistamoAuthBackend(BaseBackend):
    """
    Authenticates users with the claims returned by Tunnistamo.

    Existing users are matched by the linked `sub` first and by email second.
    """

    def __init__(self):
        super().__init__()
        self.user_model = get_user_model()

    def _find_existing_user(self, claims: dict):
        sub = claims["sub"]
        email = claims.get("email")

        try:
            user = self.user_model.objects.get(tunnistamo_user__sub=sub)
            logger.debug(f"Found existing user with Django id {user.pk} matching the sub {sub}")
            return user
        except self.user_model.DoesNotExist:
            pass

        if not email:
            return None

        email_matching_users = self.user_model.objects.filter(email__iexact=email)
        if len(email_matching_users) > 1:
            logger.warning(
                f"Found {len(email_matching_users)} existing users matching the email {email}"
            )
            raise SuspiciousOperation(
                "Multiple accounts with the same email found in Django database"
            )
        if len(email_matching_users) == 1:
            user = email_matching_users[0]
            if hasattr(user, "tunnistamo_user"):
                logger.error(
                    f"A Django user was found for the Tunnistamo account with sub: {sub} and email: {email}, "
                    f"but it has been previously linked to the account with sub: {user.tunnistamo_user.sub}."
                )
                raise SuspiciousOperation(
                    "An account with this email but a different linked Tunnistamo account found in Django database."
                )
            return user

        return None

    def _create_user(self, claims: dict):
        # Tunnistamo subs are UUIDs, which fit the default username field
        username = claims.get("preferred_username") or claims["sub"]
        return self.user_model.objects.create_user(username, email=claims.get("email") or "")

    @staticmethod
    def _update_user(user, claims: dict):
        user.first_name = claims.get("given_name", "")
        user.last_name = claims.get("family_name", "")
        if claims.get("email"):
            user.email = claims["email"]
        user.save()

        TunnistamoUser.objects.update_or_create(user=user, defaults={"sub": claims["sub"]})
        sync_ad_groups(user, claims)

    def authenticate(self, request, tunnistamo_claims=None):
        if tunnistamo_claims is None:
            return None

        user = self._find_existing_user(tunnistamo_claims)
        if user is None:
            user = self._create_user(tunnistamo_claims)

        self._update_user(user, tunnistamo_claims)
        return user

    def get_user(self, user_id):
        try:
            return self.user_model.objects.get(pk=user_id)
        except self.user_model.DoesNotExist:
            return None
