from django.conf import settings
from django.core.validators import MinValueValidator
from django.db import models

from apps.common.models import BaseModel


class InvalidStatusTransition(ValueError):
    pass


class Meal(BaseModel):
    title = models.CharField(max_length=160)
    description = models.TextField(blank=True)
    price_cents = models.IntegerField(validators=[MinValueValidator(0)])
    # Read when the weekly menu is rendered; not re-checked at payment time
    is_available = models.BooleanField(default=True)

    class Meta:
        ordering = ["title"]

    def __str__(self):
        return self.title


class Order(BaseModel):
    STATUS_PENDING = "pending"
    STATUS_PAID = "paid"
    STATUS_COMPLETED = "completed"
    STATUS_DELIVERED = "delivered"
    STATUS_CHOICES = [
        (STATUS_PENDING, "Pending"),
        (STATUS_PAID, "Paid"),
        (STATUS_COMPLETED, "Completed"),
        (STATUS_DELIVERED, "Delivered"),
    ]
    # Forward-only lifecycle
    TRANSITIONS = {
        STATUS_PENDING: {STATUS_PAID},
        STATUS_PAID: {STATUS_COMPLETED, STATUS_DELIVERED},
        STATUS_COMPLETED: set(),
        STATUS_DELIVERED: set(),
    }
    # Statuses that count as money received
    SETTLED_STATUSES = (STATUS_PAID, STATUS_COMPLETED, STATUS_DELIVERED)

    order_number = models.CharField(max_length=32, unique=True)
    user = models.ForeignKey(
        settings.AUTH_USER_MODEL, on_delete=models.SET_NULL, null=True, blank=True, related_name="orders"
    )
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default=STATUS_PENDING)
    customer_name = models.CharField(max_length=160)
    customer_email = models.EmailField()
    customer_phone = models.CharField(max_length=40, blank=True)
    shipping_address = models.CharField(max_length=255)
    city = models.CharField(max_length=120)
    state = models.CharField(max_length=2, default="AZ")
    zip_code = models.CharField(max_length=10)
    delivery_date = models.DateField(blank=True, null=True)
    total_cents = models.IntegerField(validators=[MinValueValidator(0)])
    # Gateway metadata recorded when payment is confirmed
    payment_session_id = models.CharField(max_length=255, blank=True)
    payment_intent_id = models.CharField(max_length=255, blank=True)
    paid_at = models.DateTimeField(blank=True, null=True)

    class Meta:
        ordering = ["-created_at"]
        indexes = [models.Index(fields=["status", "created_at"], name="orders_order_status_idx")]

    def __str__(self):
        return self.order_number

    @property
    def subtotal_cents(self) -> int:
        return sum(item.line_subtotal_cents for item in self.items.all())

    def can_transition_to(self, status: str) -> bool:
        return status in self.TRANSITIONS.get(self.status, set())

    def save(self, *args, **kwargs):
        is_new = self._state.adding
        prev_status = None
        should_track_status = True
        source = getattr(self, "_status_change_source", None)
        note = getattr(self, "_status_change_note", "")
        if not is_new and self.pk:
            update_fields = kwargs.get("update_fields")
            should_track_status = update_fields is None or "status" in update_fields
            if should_track_status:
                prev_status = (
                    type(self)
                    .objects.filter(pk=self.pk)
                    .values_list("status", flat=True)
                    .first()
                )
        super().save(*args, **kwargs)
        if hasattr(self, "_status_change_source"):
            delattr(self, "_status_change_source")
        if hasattr(self, "_status_change_note"):
            delattr(self, "_status_change_note")
        if is_new:
            OrderStatusChange.objects.create(
                order=self,
                status=self.status,
                source=source or "initial",
                note=note or "",
            )
        elif should_track_status and prev_status != self.status:
            OrderStatusChange.objects.create(
                order=self,
                status=self.status,
                source=source or "",
                note=note or "",
            )

    def set_status(self, status: str, *, source: str | None = None, note: str = "", fields=()) -> None:
        """Move the order forward, persisting ``fields`` in the same UPDATE."""
        if not self.can_transition_to(status):
            raise InvalidStatusTransition(f"{self.status} -> {status}")
        self.status = status
        if source:
            self._status_change_source = source
        if note:
            self._status_change_note = note
        self.save(update_fields=["status", "updated_at", *fields])


class OrderItem(BaseModel):
    order = models.ForeignKey(Order, on_delete=models.CASCADE, related_name="items")
    meal = models.ForeignKey(Meal, on_delete=models.PROTECT, related_name="order_items")
    position = models.PositiveIntegerField(default=0)
    quantity = models.PositiveIntegerField(default=1, validators=[MinValueValidator(1)])
    # Unit price at order time; never recomputed from the live menu
    price_cents_snapshot = models.IntegerField(validators=[MinValueValidator(0)])
    line_subtotal_cents = models.IntegerField(validators=[MinValueValidator(0)])

    class Meta:
        ordering = ["position", "created_at"]


class OrderStatusChange(BaseModel):
    order = models.ForeignKey(Order, on_delete=models.CASCADE, related_name="status_changes")
    status = models.CharField(max_length=20, choices=Order.STATUS_CHOICES)
    source = models.CharField(max_length=32, blank=True)
    note = models.CharField(max_length=200, blank=True)

    class Meta:
        indexes = [
            models.Index(fields=["order", "created_at"], name="orders_status_change_idx"),
        ]
        ordering = ["created_at"]


class Delivery(BaseModel):
    STATUS_PENDING = "pending"
    STATUS_ASSIGNED = "assigned"
    STATUS_OUT_FOR_DELIVERY = "out_for_delivery"
    STATUS_DELIVERED = "delivered"
    STATUS_FAILED = "failed"
    STATUS_CHOICES = [
        (STATUS_PENDING, "Pending"),
        (STATUS_ASSIGNED, "Assigned"),
        (STATUS_OUT_FOR_DELIVERY, "Out for delivery"),
        (STATUS_DELIVERED, "Delivered"),
        (STATUS_FAILED, "Failed"),
    ]

    order = models.OneToOneField(Order, on_delete=models.CASCADE, related_name="delivery")
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default=STATUS_PENDING)
    driver = models.ForeignKey(
        settings.AUTH_USER_MODEL, on_delete=models.SET_NULL, null=True, blank=True, related_name="deliveries"
    )
    route_position = models.PositiveIntegerField(blank=True, null=True)
    delivered_at = models.DateTimeField(blank=True, null=True)

    class Meta:
        verbose_name_plural = "deliveries"
        indexes = [models.Index(fields=["status", "created_at"], name="orders_delivery_status_idx")]

    def __str__(self):
        return f"Delivery({self.order_id}, {self.status})"
