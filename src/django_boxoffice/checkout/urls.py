"""URL configuration for the checkout app.

Mount these under an event-scoped prefix in the host project::

    urlpatterns = [
        path(
            "<slug:event_slug>/checkout/",
            include("django_boxoffice.checkout.urls"),
        ),
    ]
"""

from django.urls import path

from django_boxoffice.checkout.views import (
    DiscountView,
    OrderCompleteView,
    OrderCreateView,
    OrderDetailView,
    PayPalOrderView,
    PriceView,
    SeatHoldView,
    StripeIntentView,
    WaitlistView,
)
from django_boxoffice.checkout.webhooks import stripe_webhook

app_name = "checkout"

urlpatterns = [
    path("price/", PriceView.as_view(), name="price"),
    path("discount/", DiscountView.as_view(), name="discount"),
    path("seats/hold/", SeatHoldView.as_view(), name="seat-hold"),
    path("orders/", OrderCreateView.as_view(), name="order-create"),
    path("orders/<uuid:order_id>/", OrderDetailView.as_view(), name="order-detail"),
    path("orders/<uuid:order_id>/complete/", OrderCompleteView.as_view(), name="order-complete"),
    path("orders/<uuid:order_id>/stripe-intent/", StripeIntentView.as_view(), name="stripe-intent"),
    path("orders/<uuid:order_id>/paypal-order/", PayPalOrderView.as_view(), name="paypal-order"),
    path("waitlist/", WaitlistView.as_view(), name="waitlist"),
    path("webhooks/stripe/", stripe_webhook, name="stripe-webhook"),
]
