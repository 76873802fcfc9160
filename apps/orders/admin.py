from django.contrib import admin, messages

from .models import Delivery, Meal, Order, OrderItem, OrderStatusChange
from .services import materialize_deliveries


@admin.register(Meal)
class MealAdmin(admin.ModelAdmin):
    list_display = ("title", "price_cents", "is_available", "created_at")
    list_filter = ("is_available",)
    search_fields = ("title", "description")
    ordering = ("title",)


class OrderItemInline(admin.TabularInline):
    model = OrderItem
    extra = 0
    fields = ("meal", "quantity", "price_cents_snapshot", "line_subtotal_cents")
    readonly_fields = ("price_cents_snapshot", "line_subtotal_cents")


class OrderStatusChangeInline(admin.TabularInline):
    model = OrderStatusChange
    extra = 0
    fields = ("status", "source", "note", "created_at")
    readonly_fields = fields
    can_delete = False


@admin.register(Order)
class OrderAdmin(admin.ModelAdmin):
    list_display = (
        "order_number",
        "status",
        "customer_name",
        "customer_email",
        "zip_code",
        "total_cents",
        "delivery_date",
        "created_at",
    )
    list_filter = ("status",)
    search_fields = ("order_number", "customer_name", "customer_email", "customer_phone")
    date_hierarchy = "created_at"
    ordering = ("-created_at",)
    readonly_fields = ("order_number", "payment_session_id", "payment_intent_id", "paid_at")
    inlines = [OrderItemInline, OrderStatusChangeInline]
    actions = ["create_missing_deliveries"]

    @admin.action(description="Create missing deliveries for selected paid orders")
    def create_missing_deliveries(self, request, queryset):
        count = materialize_deliveries(queryset.values_list("pk", flat=True))
        self.message_user(request, f"Created {count} delivery record(s).", messages.SUCCESS)


@admin.register(Delivery)
class DeliveryAdmin(admin.ModelAdmin):
    list_display = ("order", "status", "driver", "route_position", "delivered_at", "created_at")
    list_filter = ("status",)
    search_fields = ("order__order_number", "order__customer_name")
    list_select_related = ("order", "driver")
    raw_id_fields = ("order", "driver")
