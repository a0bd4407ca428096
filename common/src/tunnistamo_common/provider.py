from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import ClassVar, Optional, Self

from .errors import UnknownProviderError

PRODUCTION_ENVIRONMENT = "https://api.hel.fi/sso"
TESTING_ENVIRONMENT = "https://api.hel.fi/sso-test"

DEFAULT_CLIENT_SCOPES = ("openid", "email", "ad_groups")


@dataclass(frozen=True)
class EndpointSet:
    authorization: str
    token: str
    userinfo: str

    issuer: str
    jwks: str
    end_session: str


def get_endpoints(is_production: bool) -> EndpointSet:
    base = PRODUCTION_ENVIRONMENT if is_production else TESTING_ENVIRONMENT

    return EndpointSet(
        authorization=f"{base}/openid/authorize/",
        token=f"{base}/openid/token/",
        userinfo=f"{base}/openid/userinfo/",
        issuer=f"{base}/openid",
        jwks=f"{base}/openid/jwks/",
        end_session=f"{base}/openid/end-session/",
    )


def parse_client_scopes(raw: Optional[str]) -> list[str]:
    """
    Splits the comma separated scopes setting.

    Whitespace around the commas is kept as is, so "openid, email" yields
    the scopes "openid" and " email".
    """

    if not raw:
        return list(DEFAULT_CLIENT_SCOPES)
    return raw.split(",")


@dataclass(frozen=True)
class ProviderConfig:
    is_production: bool = False
    client_scopes: tuple[str, ...] = DEFAULT_CLIENT_SCOPES
    auto_login: bool = False

    @classmethod
    def from_configuration(cls, configuration: dict) -> Self:
        return cls(
            is_production=bool(configuration.get("is_production", False)),
            client_scopes=tuple(parse_client_scopes(configuration.get("client_scopes"))),
            auto_login=bool(configuration.get("auto_login", False)),
        )


class OidcProvider(ABC):
    """
    A single OpenID Connect provider type.

    Subclasses are registered with `register_provider` and looked up by the
    `plugin` type tag stored in the client configuration.
    """

    plugin_id: ClassVar[str]
    label: ClassVar[str]

    def __init__(self, configuration: ProviderConfig):
        self.configuration = configuration

    @abstractmethod
    def get_endpoints(self) -> EndpointSet:
        ...

    def get_client_scopes(self) -> list[str]:
        return list(self.configuration.client_scopes)

    def is_auto_login_enabled(self) -> bool:
        return self.configuration.auto_login


_providers: dict[str, type[OidcProvider]] = {}


def register_provider(provider_class: type[OidcProvider]) -> type[OidcProvider]:
    if provider_class.plugin_id in _providers:
        raise ValueError(f"A provider with the plugin id {provider_class.plugin_id} is already registered")
    _providers[provider_class.plugin_id] = provider_class
    return provider_class


def get_provider_class(plugin_id: str) -> type[OidcProvider]:
    try:
        return _providers[plugin_id]
    except KeyError:
        raise UnknownProviderError(plugin_id) from None


def provider_choices() -> list[tuple[str, str]]:
    return [(plugin_id, provider.label) for plugin_id, provider in _providers.items()]


@register_provider
class Tunnistamo(OidcProvider):
    plugin_id = "tunnistamo"
    label = "Tunnistamo"

    def is_production(self) -> bool:
        return self.configuration.is_production

    def get_endpoints(self) -> EndpointSet:
        # The endpoints are derived on every call, the configuration may change between requests.
        return get_endpoints(self.is_production())
