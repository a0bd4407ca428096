from typing import Any, Callable, Iterable

RedirectUrlHook = Callable[[str, Any], str]


class RedirectUrlHooks:
    """
    An ordered registry of functions rewriting the `redirect_uri` sent to the OIDC Provider.

    Each hook is called as `hook(url, request)` and must return the URL to use,
    which is then passed to the next hook. Without any hooks the URL is returned unchanged.

    ```
    @redirect_url_hooks.register
    def use_public_host(url, request):
        return url.replace("http://backend:8000", "https://www.hel.fi")
    ```
    """

    def __init__(self, hooks: Iterable[RedirectUrlHook] = ()):
        self._hooks: list[RedirectUrlHook] = list(hooks)

    def register(self, hook: RedirectUrlHook) -> RedirectUrlHook:
        self._hooks.append(hook)
        return hook

    def unregister(self, hook: RedirectUrlHook):
        self._hooks.remove(hook)

    def clear(self):
        self._hooks.clear()

    def apply(self, url: str, request: Any) -> str:
        for hook in self._hooks:
            url = hook(url, request)
            if not isinstance(url, str):
                raise TypeError(
                    f"The redirect URL hook {hook!r} returned {type(url).__name__} instead of a URL string"
                )
        return url

    def __len__(self) -> int:
        return len(self._hooks)

    def __iter__(self):
        return iter(list(self._hooks))
