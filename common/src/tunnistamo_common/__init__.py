"""
Tunnistamo OIDC common package

Framework independent description of the Tunnistamo OpenID Connect provider
and a small client for its endpoints.
"""

__version__ = "1.0.0"

from .client import OidcClient
from .hooks import RedirectUrlHooks
from .provider import (
    EndpointSet,
    OidcProvider,
    ProviderConfig,
    Tunnistamo,
    get_endpoints,
    get_provider_class,
    parse_client_scopes,
)

__all__ = [
	"EndpointSet",
	"OidcClient",
	"OidcProvider",
	"ProviderConfig",
	"RedirectUrlHooks",
	"Tunnistamo",
	"get_endpoints",
	"get_provider_class",
	"parse_client_scopes",
]
