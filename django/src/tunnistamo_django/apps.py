from django.apps import AppConfig
from django.conf import settings
from django.core.exceptions import ImproperlyConfigured

from ._common import logger

MIDDLEWARE_PATH = "tunnistamo_django.middleware.AutoLoginMiddleware"


class TunnistamoAppConfig(AppConfig):
    name = "tunnistamo_django"
    verbose_name = "Tunnistamo OpenID Connect"
    default_auto_field = "django.db.models.AutoField"

    @staticmethod
    def verify_correct_setup():
        """
        Verifies that the AutoLoginMiddleware is placed after the session and authentication middleware.
        Both are needed to tell whether a login attempt is already pending.

        A missing AutoLoginMiddleware is not an error, auto login is then simply not available.
        """

        try:
            our_index = settings.MIDDLEWARE.index(MIDDLEWARE_PATH)
        except ValueError:
            logger.info("AutoLoginMiddleware is not installed, auto login on 403 pages is not available")
            return

        for required in (
            "django.contrib.sessions.middleware.SessionMiddleware",
            "django.contrib.auth.middleware.AuthenticationMiddleware",
        ):
            try:
                required_index = settings.MIDDLEWARE.index(required)
            except ValueError:
                raise ImproperlyConfigured(f"{required} is not installed! It is required by AutoLoginMiddleware")

            if required_index > our_index:
                raise ImproperlyConfigured(f"AutoLoginMiddleware must be placed after {required} in the MIDDLEWARE list")

    def ready(self):
        from .hooks import load_configured_hooks

        self.verify_correct_setup()
        load_configured_hooks()
