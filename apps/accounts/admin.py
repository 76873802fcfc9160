from django.contrib import admin
from django.contrib.auth import get_user_model
from django.contrib.auth.admin import UserAdmin as DjangoUserAdmin
from django.utils.translation import gettext_lazy as _


User = get_user_model()


@admin.register(User)
class UserAdmin(DjangoUserAdmin):
    list_display = (
        "email",
        "username",
        "first_name",
        "last_name",
        "role",
        "is_staff",
    )
    list_filter = DjangoUserAdmin.list_filter + ("role",)
    search_fields = ("email", "first_name", "last_name", "username")
    ordering = ("email",)

    fieldsets = DjangoUserAdmin.fieldsets + (
        (_("Storefront"), {"fields": ("role",)}),
    )
