from django import forms
from django.core.exceptions import ValidationError

from .models import OpenIdConnectClient


class OpenIdConnectClientForm(forms.ModelForm):
    class Meta:
        model = OpenIdConnectClient
        fields = [
            "label",
            "plugin",
            "client_id",
            "client_secret",
            "is_production",
            "auto_login",
            "client_scopes",
        ]
        widgets = {
            "client_secret": forms.PasswordInput(render_value=True),
        }

    def clean(self):
        cleaned_data = super().clean()

        if cleaned_data.get("auto_login"):
            # Only the first auto login client would ever be used, so a second one is a configuration error
            others = OpenIdConnectClient.objects.filter(plugin=cleaned_data.get("plugin"), auto_login=True)
            if self.instance.pk is not None:
                others = others.exclude(pk=self.instance.pk)
            other = others.first()
            if other is not None:
                raise ValidationError(
                    {"auto_login": f'Auto login is already enabled for the client "{other}".'}
                )

        return cleaned_data
