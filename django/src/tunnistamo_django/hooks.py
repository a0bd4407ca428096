from django.conf import settings
from django.core.exceptions import ImproperlyConfigured
from django.utils.module_loading import import_string

from tunnistamo_common.hooks import RedirectUrlHooks

# Hooks rewriting the callback URL sent to Tunnistamo, shared by the whole project.
# Hooks can be registered with `redirect_url_hooks.register` or listed as dotted paths
# in the `TUNNISTAMO_REDIRECT_URL_HOOKS` setting.
redirect_url_hooks = RedirectUrlHooks()


def load_configured_hooks(hooks: RedirectUrlHooks = redirect_url_hooks):
    for path in getattr(settings, "TUNNISTAMO_REDIRECT_URL_HOOKS", []):
        try:
            hook = import_string(path)
        except ImportError as error:
            raise ImproperlyConfigured(
                f"Failed to import the redirect URL hook {path} listed in TUNNISTAMO_REDIRECT_URL_HOOKS"
            ) from error

        if not callable(hook):
            raise ImproperlyConfigured(f"The redirect URL hook {path} is not callable")
        if hook not in hooks:
            hooks.register(hook)
