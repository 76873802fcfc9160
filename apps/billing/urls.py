from django.urls import path

from . import views

app_name = "billing"

urlpatterns = [
    path("orders/<uuid:order_id>/checkout", views.checkout_view, name="checkout"),
]
