from django.urls import path

from .views import CheckoutPingView, CheckoutView

urlpatterns = [
    path("", CheckoutView.as_view(), name="checkout"),
    path("ping/", CheckoutPingView.as_view(), name="checkout-ping"),
]
