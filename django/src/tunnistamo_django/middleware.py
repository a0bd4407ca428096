from typing import Optional

from django.core.exceptions import PermissionDenied
from django.http import HttpRequest, HttpResponse

from .apps import TunnistamoAppConfig
from .trigger import ReauthenticationTrigger


def wants_html(request: HttpRequest) -> bool:
    # Requests without an Accept header are treated as accepting anything
    return request.accepts("text/html")


class AutoLoginMiddleware:
    """
    Redirects anonymous users to the Tunnistamo login when a view raises `PermissionDenied`,
    if a Tunnistamo client has auto login enabled.

    Only HTML requests are handled; for any other request Django renders the usual 403 response.
    """

    def __init__(self, get_response, trigger: Optional[ReauthenticationTrigger] = None):
        # The app also calls this function, but only if it's in the INSTALLED_APPS list
        TunnistamoAppConfig.verify_correct_setup()

        self.get_response = get_response
        self.trigger = trigger if trigger is not None else ReauthenticationTrigger()

    def __call__(self, request):
        return self.get_response(request)

    def process_exception(self, request: HttpRequest, exception: Exception) -> Optional[HttpResponse]:
        if not isinstance(exception, PermissionDenied):
            return None
        if not wants_html(request):
            return None

        return self.trigger.handle(request)
