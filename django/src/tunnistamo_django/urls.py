from django.urls.conf import path

from .views import CallbackView, LoginView, LogoutView

urlpatterns = [
    path("login/", LoginView.as_view(), name="tunnistamo_login"),
    path("callback/", CallbackView.as_view(), name="tunnistamo_callback"),
    path("logout/", LogoutView.as_view(), name="tunnistamo_logout"),
]
