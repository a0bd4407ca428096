from dataclasses import dataclass
from typing import Callable, Optional

from django.http import HttpRequest, HttpResponse

from tunnistamo_common.hooks import RedirectUrlHooks
from tunnistamo_common.provider import OidcProvider

from ._common import get_auto_login_client, logger
from .hooks import redirect_url_hooks
from .session import OidcSession
from .utils import redirect_to_tunnistamo_login


@dataclass(frozen=True)
class AuthAttemptContext:
    has_error_query_param: bool
    is_authenticated: bool
    has_pending_state_token: bool
    is_frame_request: bool

    @classmethod
    def from_request(cls, request: HttpRequest, session: OidcSession) -> "AuthAttemptContext":
        user = getattr(request, "user", None)
        return cls(
            has_error_query_param=bool(request.GET.get("error")),
            is_authenticated=user is not None and user.is_authenticated,
            has_pending_state_token=session.retrieve_state_token() is not None,
            is_frame_request=request.headers.get("Sec-Fetch-Dest") == "iframe",
        )

    def get_skip_reason(self) -> Optional[str]:
        # Attempt to log in only once. This prevents an infinite loop in case
        # the authentication fails or the user has no access to the page even after logging in.
        if self.has_error_query_param:
            return "the previous authentication attempt returned an error"
        if self.is_authenticated:
            return "the user is already authenticated"
        if self.has_pending_state_token:
            return "an authentication attempt is already in progress"
        return None


@dataclass(frozen=True)
class RedirectDecision:
    silent: bool
    scopes: str


class ReauthenticationTrigger:
    """
    Decides whether an access denied error should send the user to the Tunnistamo login instead.

    All collaborators are passed in explicitly:

    - `client_lookup` returns the `OpenIdConnectClient` with auto login enabled, or `None`,
    - `session_factory` wraps the request in an `OidcSession`,
    - `hooks` rewrite the callback URL sent to Tunnistamo.
    """

    def __init__(
        self,
        client_lookup: Callable[[], Optional[object]] = get_auto_login_client,
        session_factory: Callable[[HttpRequest], OidcSession] = OidcSession,
        hooks: RedirectUrlHooks = redirect_url_hooks,
    ):
        self.client_lookup = client_lookup
        self.session_factory = session_factory
        self.hooks = hooks

    @staticmethod
    def decide(plugin: OidcProvider, context: AuthAttemptContext) -> Optional[RedirectDecision]:
        if not plugin.is_auto_login_enabled():
            return None

        skip_reason = context.get_skip_reason()
        if skip_reason is not None:
            logger.debug("Not redirecting to Tunnistamo: %s", skip_reason)
            return None

        return RedirectDecision(
            # Do silent authentication if the site is served from an iframe,
            # the user cannot interact with a login form there.
            silent=context.is_frame_request,
            scopes=" ".join(plugin.get_client_scopes()),
        )

    def handle(self, request: HttpRequest) -> Optional[HttpResponse]:
        client_config = self.client_lookup()
        if client_config is None:
            return None

        session = self.session_factory(request)
        context = AuthAttemptContext.from_request(request, session)
        decision = self.decide(client_config.get_plugin(), context)
        if decision is None:
            return None

        response = redirect_to_tunnistamo_login(
            request,
            client_config,
            decision.scopes,
            prompt_none=decision.silent,
            session=session,
            hooks=self.hooks,
        )
        session.save_destination()

        logger.info(
            "Redirecting an unauthorized request to %s to Tunnistamo%s",
            request.path,
            " silently" if decision.silent else "",
        )
        return response
