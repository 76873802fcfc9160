from django.contrib import admin
from django.http import HttpResponse
from django.urls import path, include

urlpatterns = [
    path("admin/", admin.site.urls),
    # Healthcheck endpoint
    path("healthz", lambda _request: HttpResponse("ok")),
    path("api/orders/", include("apps.orders.urls")),
    path("api/accounting/", include("apps.accounting.urls")),
    path("billing/", include("apps.billing.urls")),
    path("stripe/", include("apps.billing.webhooks")),  # /stripe/webhook/
]
