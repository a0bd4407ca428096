from typing import Optional

from django.conf import settings
from django.http import HttpRequest
from django.shortcuts import resolve_url
from django.utils import timezone
from django.utils.crypto import get_random_string
from django.utils.http import url_has_allowed_host_and_scheme

from ._common import logger
from ._consts import DESTINATION_SESSION_KEY, STATE_MAX_AGE, STATE_SESSION_KEY


class OidcSession:
    """
    The per-user state of a Tunnistamo login attempt, stored in the Django session.

    Only a single attempt can be pending at a time: the state token and the nonce are
    stored when redirecting to Tunnistamo and removed by the callback view.
    An attempt older than `TUNNISTAMO_STATE_MAX_AGE` seconds is treated as abandoned.
    """

    def __init__(self, request: HttpRequest):
        self.request = request
        self.session = request.session

    def create_state_token(
        self,
        nonce: str,
        client_pk: int,
        prompt_none: bool = False,
        callback_uri: str = "",
    ) -> str:
        state = get_random_string(32)
        self.session[STATE_SESSION_KEY] = {
            "state": state,
            "nonce": nonce,
            "client": client_pk,
            "prompt_none": prompt_none,
            "callback_uri": callback_uri,
            "created_at": timezone.now().timestamp(),
        }
        return state

    def _is_expired(self, entry: dict) -> bool:
        max_age = getattr(settings, "TUNNISTAMO_STATE_MAX_AGE", STATE_MAX_AGE)
        return timezone.now().timestamp() - entry.get("created_at", 0) > max_age

    def retrieve_state_token(self) -> Optional[str]:
        entry = self.session.get(STATE_SESSION_KEY)
        if entry is None or self._is_expired(entry):
            return None
        return entry["state"]

    def pop_state_entry(self, state: Optional[str]) -> Optional[dict]:
        """
        Removes the pending login attempt and returns it if its state token matches `state`
        and it has not expired.
        """

        entry = self.session.pop(STATE_SESSION_KEY, None)
        if entry is None or state is None or entry["state"] != state:
            return None
        if self._is_expired(entry):
            logger.info("Received a callback for an expired login attempt")
            return None
        return entry

    def _is_safe_url(self, url: str) -> bool:
        return url_has_allowed_host_and_scheme(
            url,
            allowed_hosts={self.request.get_host()},
            require_https=self.request.is_secure(),
        )

    def save_destination(self, destination: Optional[str] = None):
        """
        Stores the page the user should return to after the login.
        Defaults to the path of the current request.
        """

        if destination is None:
            destination = self.request.get_full_path()

        if not self._is_safe_url(destination):
            logger.warning("Refusing to store an unsafe login destination: %s", destination)
            destination = resolve_url(settings.LOGIN_REDIRECT_URL)

        self.session[DESTINATION_SESSION_KEY] = destination

    def retrieve_destination(self, clear: bool = True) -> str:
        if clear:
            destination = self.session.pop(DESTINATION_SESSION_KEY, None)
        else:
            destination = self.session.get(DESTINATION_SESSION_KEY)
        # LOGIN_REDIRECT_URL can be a URL pattern name, the destination is always a URL
        return destination or resolve_url(settings.LOGIN_REDIRECT_URL)
