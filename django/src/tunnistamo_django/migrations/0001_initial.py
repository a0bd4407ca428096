import django.db.models.deletion
from django.conf import settings
from django.db import migrations, models

import tunnistamo_common.provider


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name="OpenIdConnectClient",
            fields=[
                ("id", models.AutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("label", models.CharField(max_length=255)),
                (
                    "plugin",
                    models.CharField(
                        choices=tunnistamo_common.provider.provider_choices,
                        default="tunnistamo",
                        max_length=64,
                    ),
                ),
                ("client_id", models.CharField(max_length=255)),
                ("client_secret", models.CharField(max_length=255)),
                ("is_production", models.BooleanField(default=False, verbose_name="Use production environment")),
                ("auto_login", models.BooleanField(default=False, verbose_name="Auto login on 403 pages")),
                (
                    "client_scopes",
                    models.CharField(
                        blank=True,
                        default="",
                        help_text="A comma separated list of client scopes.",
                        max_length=1024,
                        verbose_name="Client scopes",
                    ),
                ),
            ],
            options={
                "verbose_name": "OpenID Connect client",
                "ordering": ["pk"],
            },
        ),
        migrations.CreateModel(
            name="TunnistamoUser",
            fields=[
                (
                    "user",
                    models.OneToOneField(
                        on_delete=django.db.models.deletion.CASCADE,
                        primary_key=True,
                        related_name="tunnistamo_user",
                        serialize=False,
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
                ("sub", models.CharField(max_length=255, unique=True)),
            ],
        ),
    ]
