from django.conf import settings
from django.db import models

from tunnistamo_common.provider import OidcProvider, ProviderConfig, get_provider_class, provider_choices

from ._consts import TUNNISTAMO_PLUGIN_ID


class OpenIdConnectClient(models.Model):
    label = models.CharField(max_length=255)
    plugin = models.CharField(max_length=64, choices=provider_choices, default=TUNNISTAMO_PLUGIN_ID)

    client_id = models.CharField(max_length=255)
    client_secret = models.CharField(max_length=255)

    is_production = models.BooleanField("Use production environment", default=False)
    auto_login = models.BooleanField("Auto login on 403 pages", default=False)
    client_scopes = models.CharField(
        "Client scopes",
        max_length=1024,
        blank=True,
        default="",
        help_text="A comma separated list of client scopes.",
    )

    class Meta:
        verbose_name = "OpenID Connect client"
        # The first matching client wins when looking for an auto login client,
        # so the storage order must be stable.
        ordering = ["pk"]

    def __str__(self):
        return self.label

    def get_configuration(self) -> ProviderConfig:
        return ProviderConfig.from_configuration({
            "is_production": self.is_production,
            "client_scopes": self.client_scopes,
            "auto_login": self.auto_login,
        })

    def get_plugin(self) -> OidcProvider:
        return get_provider_class(self.plugin)(self.get_configuration())


class TunnistamoUser(models.Model):
    user = models.OneToOneField(
        settings.AUTH_USER_MODEL,
        primary_key=True,
        on_delete=models.CASCADE,
        related_name="tunnistamo_user",
    )
    # The max length is specified in the OpenID Connect Core spec:
    # https://openid.net/specs/openid-connect-core-1_0.html#IDToken
    sub = models.CharField(unique=True, max_length=255)
