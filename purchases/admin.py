from django.contrib import admin

from .models import PromoCode, Purchase, UserVersionAccess


@admin.register(PromoCode)
class PromoCodeAdmin(admin.ModelAdmin):
    list_display = ("code", "discount_percentage", "is_active", "valid_until", "used_count", "max_uses")
    list_filter = ("is_active",)
    search_fields = ("code",)


@admin.register(Purchase)
class PurchaseAdmin(admin.ModelAdmin):
    list_display = ("id", "user", "course", "course_version", "final_amount", "status", "created_at")
    list_filter = ("status", "course")
    search_fields = ("user__username", "user__email", "course__title")
    # Status changes go through the API so access grants stay in step.
    readonly_fields = ("status",)


@admin.register(UserVersionAccess)
class UserVersionAccessAdmin(admin.ModelAdmin):
    list_display = ("user", "course_version", "purchase", "granted_at", "is_active")
    list_filter = ("is_active",)
    search_fields = ("user__username", "course_version__course__title")
