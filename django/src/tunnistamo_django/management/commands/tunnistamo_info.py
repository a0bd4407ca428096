from django.core.management import BaseCommand, CommandError

from tunnistamo_common.client import OidcClient
from tunnistamo_common.errors import OidcError
from tunnistamo_django.models import OpenIdConnectClient


class Command(BaseCommand):
    help = (
        "Displays the configured OpenID Connect clients and the endpoints they use. "
        "With --check it also fetches the provider configuration of each client."
    )

    def add_arguments(self, parser):
        parser.add_argument(
            "--check",
            action="store_true",
            help="Fetch <issuer>/.well-known/openid-configuration for every client",
        )

    def _check(self, client_config):
        client = OidcClient(
            endpoints=client_config.get_plugin().get_endpoints(),
            client_id=client_config.client_id,
            client_secret=client_config.client_secret,
            callback_uri="",
        )
        try:
            client.load_provider_configuration()
        except OidcError as e:
            raise CommandError(f"Failed to load the provider configuration for {client_config}: {e}")
        self.stdout.write("  The provider configuration is valid.")

    def handle(self, *args, **options):
        clients = list(OpenIdConnectClient.objects.all())
        if not clients:
            self.stdout.write("No OpenID Connect clients are configured.")
            self.stdout.write("Use the 'manage.py tunnistamo_init' command to add one.")
            return

        auto_login_clients = []
        for client_config in clients:
            plugin = client_config.get_plugin()
            endpoints = plugin.get_endpoints()

            self.stdout.write(f"{client_config.label} ({client_config.plugin}):")
            self.stdout.write(f"  Client ID:       \t{client_config.client_id}")
            self.stdout.write("  Client Secret:   \t***")
            self.stdout.write(f"  Environment:     \t{'production' if client_config.is_production else 'testing'}")
            self.stdout.write(f"  Scopes:          \t{' '.join(plugin.get_client_scopes())}")
            self.stdout.write(f"  Auto login:      \t{'enabled' if plugin.is_auto_login_enabled() else 'disabled'}")
            self.stdout.write(f"  Authorization:   \t{endpoints.authorization}")
            self.stdout.write(f"  Token:           \t{endpoints.token}")
            self.stdout.write(f"  Userinfo:        \t{endpoints.userinfo}")

            if plugin.is_auto_login_enabled():
                auto_login_clients.append(client_config)
            if options["check"]:
                self._check(client_config)

        if len(auto_login_clients) > 1:
            self.stderr.write(
                f"Auto login is enabled for {len(auto_login_clients)} clients, "
                f"only {auto_login_clients[0]} will be used."
            )
