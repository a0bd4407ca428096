from django.core.management.base import BaseCommand, CommandError

from tunnistamo_django.forms import OpenIdConnectClientForm
from tunnistamo_django.models import OpenIdConnectClient
from .._input_utils import prompt_client_scopes, prompt_non_empty, prompt_yes_no


class Command(BaseCommand):
    help = "Add a new Tunnistamo client using a provided Client ID and Client Secret."

    def handle(self, *args, **options):
        existing = OpenIdConnectClient.objects.filter(plugin="tunnistamo").count()
        if existing:
            self.stdout.write(f"There are already {existing} Tunnistamo clients configured.")
            if not prompt_yes_no("Add another one?", default=False):
                return

        data = {
            "label": prompt_non_empty("Enter a label for the client:"),
            "plugin": "tunnistamo",
            "client_id": prompt_non_empty("Enter the Client ID:"),
            "client_secret": prompt_non_empty("Enter the Client Secret:", secret=True),
            "is_production": prompt_yes_no("Use the production environment?", default=False),
            "auto_login": prompt_yes_no("Log in automatically on 403 pages?", default=False),
            "client_scopes": prompt_client_scopes(),
        }

        form = OpenIdConnectClientForm(data)
        if not form.is_valid():
            errors = "\n".join(
                f"{field}: {' '.join(messages)}" for field, messages in form.errors.items()
            )
            raise CommandError(f"Invalid client configuration:\n{errors}")

        client_config = form.save()
        self.stdout.write(f"Stored the Tunnistamo client {client_config}.")
