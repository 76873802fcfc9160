from django.urls import path

from . import views

app_name = "orders"

urlpatterns = [
    path("pending", views.create_pending_order_view, name="create_pending"),
    path("deliveries/sync", views.sync_deliveries_view, name="sync_deliveries"),
]
