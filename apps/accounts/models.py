from django.contrib.auth.models import AbstractUser
from django.db import models

from apps.common.models import BaseModel


class User(BaseModel, AbstractUser):
    """Custom User with UUID primary key, timestamps and a storefront role.

    Authentication itself lives outside this project; the role is only read
    to gate staff-only endpoints (delivery sweep, manual accounting sync).
    """

    ROLE_CUSTOMER = "customer"
    ROLE_EMPLOYEE = "employee"
    ROLE_ADMIN = "admin"
    ROLE_CHOICES = [
        (ROLE_CUSTOMER, "Customer"),
        (ROLE_EMPLOYEE, "Employee"),
        (ROLE_ADMIN, "Admin"),
    ]

    email = models.EmailField("email address", blank=True)
    role = models.CharField(max_length=20, choices=ROLE_CHOICES, default=ROLE_CUSTOMER)

    @property
    def is_admin(self) -> bool:
        return bool(self.is_superuser or self.role == self.ROLE_ADMIN)

    def save(self, *args, **kwargs):
        # Normalize email: strip + lower
        if self.email:
            self.email = str(self.email).strip().lower()
        return super().save(*args, **kwargs)
