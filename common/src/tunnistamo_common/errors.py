class OidcError(Exception):
    pass


class OidcProviderError(OidcError):
    """
    The OIDC Provider answered with an OAuth 2.0 error response,
    either in the callback query string or in the body of a back-channel request.
    """

    def __init__(self, response: dict):
        super().__init__(
            f'Tunnistamo returned an error of type "{response.get("error")}":\n'
            f"{response.get('error_description', '')}",
        )
        self.response = response

    @property
    def error(self) -> str:
        return self.response.get("error", "")


class OidcRequestError(OidcError):
    pass


class OidcValidationError(OidcError):
    pass


class UnknownProviderError(OidcError):
    def __init__(self, plugin_id: str):
        super().__init__(f'No OIDC provider is registered for the plugin "{plugin_id}"')
        self.plugin_id = plugin_id
