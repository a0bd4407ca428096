from django.contrib import admin

from .forms import OpenIdConnectClientForm
from .models import OpenIdConnectClient, TunnistamoUser


@admin.register(OpenIdConnectClient)
class OpenIdConnectClientAdmin(admin.ModelAdmin):
    form = OpenIdConnectClientForm
    list_display = ["label", "plugin", "client_id", "is_production", "auto_login"]
    fieldsets = [
        (None, {"fields": ["label", "plugin", "client_id", "client_secret"]}),
        ("Tunnistamo", {"fields": ["is_production", "auto_login", "client_scopes"]}),
    ]


@admin.register(TunnistamoUser)
class TunnistamoUserAdmin(admin.ModelAdmin):
    list_display = ["user", "sub"]
    search_fields = ["sub", "user__username", "user__email"]
    raw_id_fields = ["user"]
