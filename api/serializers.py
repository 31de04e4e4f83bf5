"""Serializers for REST API v1.

Models are written through the service layer (`courses.versioning`,
`courses.linking`, `purchases.services`), so most serializers here are
read-only views plus small input serializers for the actions.
"""
from __future__ import annotations

from django.contrib.auth import get_user_model
from rest_framework import serializers

from activity.models import Notification
from courses.models import Category, Chapter, Course, CourseVersion
from courses.pricing import upgrade_price
from purchases.models import Purchase, UserVersionAccess
from sitesettings.models import SiteSettings

User = get_user_model()


class UserSerializer(serializers.ModelSerializer):
    role = serializers.SerializerMethodField()

    class Meta:
        model = User
        fields = ("id", "username", "role")

    def get_role(self, obj) -> str | None:
        profile = getattr(obj, "profile", None)
        return getattr(profile, "role", None)


class CategorySerializer(serializers.ModelSerializer):
    class Meta:
        model = Category
        fields = ("id", "name", "slug")


class CourseSerializer(serializers.ModelSerializer):
    author = UserSerializer(read_only=True)
    category = serializers.PrimaryKeyRelatedField(queryset=Category.objects.all())
    active_version = serializers.SerializerMethodField()

    class Meta:
        model = Course
        fields = (
            "id", "title", "slug", "description", "price", "status", "category",
            "author", "active_version", "created_at", "updated_at",
        )
        read_only_fields = ("author", "created_at", "updated_at")

    def get_active_version(self, obj) -> int | None:
        version = obj.active_version
        return version.version if version else None


class ChapterSerializer(serializers.ModelSerializer):
    class Meta:
        model = Chapter
        fields = ("id", "course_version", "title", "description", "order", "is_free", "original_chapter")
        read_only_fields = ("original_chapter",)

    def validate(self, attrs):
        version = attrs.get("course_version") or getattr(self.instance, "course_version", None)
        order = attrs.get("order", getattr(self.instance, "order", 0))
        clash = Chapter.objects.filter(course_version=version, order=order)
        if self.instance is not None:
            clash = clash.exclude(pk=self.instance.pk)
        if clash.exists():
            raise serializers.ValidationError({"order": "This position is already taken in the version."})
        return attrs


class CourseVersionSerializer(serializers.ModelSerializer):
    state = serializers.CharField(read_only=True)
    chapters_count = serializers.SerializerMethodField()
    upgrade_price = serializers.SerializerMethodField()

    class Meta:
        model = CourseVersion
        fields = (
            "id", "course", "version", "title", "description", "changelog",
            "is_active", "published_at", "state", "chapters_count",
            "upgrade_price_type", "upgrade_price_value", "upgrade_discount_type", "upgrade_discount_value",
            "upgrade_discount_start", "upgrade_discount_end", "upgrade_price",
            "created_at", "updated_at",
        )
        read_only_fields = ("version", "is_active", "published_at", "created_at", "updated_at")

    def get_chapters_count(self, obj) -> int:
        annotated = getattr(obj, "chapters_count", None)
        return annotated if annotated is not None else obj.chapters.count()

    def get_upgrade_price(self, obj) -> str | None:
        price = upgrade_price(obj)
        return None if price is None else str(price)

    def validate(self, attrs):
        for kind, value in (("upgrade_price_type", "upgrade_price_value"), ("upgrade_discount_type", "upgrade_discount_value")):
            kind_set = attrs.get(kind, getattr(self.instance, kind, ""))
            value_set = attrs.get(value, getattr(self.instance, value, None))
            if bool(kind_set) != (value_set is not None):
                raise serializers.ValidationError({value: "Set both the type and the value, or neither."})
            if value_set is not None and value_set < 0:
                raise serializers.ValidationError({value: "Must not be negative."})
        start = attrs.get("upgrade_discount_start", getattr(self.instance, "upgrade_discount_start", None))
        end = attrs.get("upgrade_discount_end", getattr(self.instance, "upgrade_discount_end", None))
        if start and end and end <= start:
            raise serializers.ValidationError({"upgrade_discount_end": "Must be after the discount start."})
        return attrs


class CourseVersionDetailSerializer(CourseVersionSerializer):
    chapters = ChapterSerializer(many=True, read_only=True)

    class Meta(CourseVersionSerializer.Meta):
        fields = CourseVersionSerializer.Meta.fields + ("chapters",)


class CourseVersionCreateSerializer(serializers.Serializer):
    course = serializers.PrimaryKeyRelatedField(queryset=Course.objects.all())
    title = serializers.CharField(max_length=200, required=False, allow_blank=True)
    description = serializers.CharField(required=False, allow_blank=True)
    changelog = serializers.CharField(required=False, allow_blank=True)
    copy_from = serializers.PrimaryKeyRelatedField(queryset=CourseVersion.objects.all(), required=False, allow_null=True)

    def validate(self, attrs):
        source = attrs.get("copy_from")
        if source is not None and source.course_id != attrs["course"].pk:
            raise serializers.ValidationError({"copy_from": "Source version belongs to a different course."})
        return attrs


class PublishSerializer(serializers.Serializer):
    activate = serializers.BooleanField(default=False)


class LinkChaptersSerializer(serializers.Serializer):
    source_version = serializers.PrimaryKeyRelatedField(
        queryset=CourseVersion.objects.all(), required=False, allow_null=True
    )
    dry_run = serializers.BooleanField(default=False)


class ChapterLinkSerializer(serializers.Serializer):
    original_chapter = serializers.PrimaryKeyRelatedField(queryset=Chapter.objects.all(), allow_null=True)


class PurchaseSerializer(serializers.ModelSerializer):
    promo_code = serializers.SlugRelatedField(slug_field="code", read_only=True)

    class Meta:
        model = Purchase
        fields = (
            "id", "user", "course", "course_version", "amount", "final_amount",
            "status", "promo_code", "created_at", "updated_at",
        )
        read_only_fields = fields


class PurchaseCreateSerializer(serializers.Serializer):
    course = serializers.PrimaryKeyRelatedField(queryset=Course.objects.all())
    course_version = serializers.PrimaryKeyRelatedField(
        queryset=CourseVersion.objects.filter(published_at__isnull=False), required=False, allow_null=True
    )
    promo_code = serializers.CharField(max_length=50, required=False, allow_blank=True)


class UserVersionAccessSerializer(serializers.ModelSerializer):
    course = serializers.IntegerField(source="course_version.course_id", read_only=True)
    version = serializers.IntegerField(source="course_version.version", read_only=True)

    class Meta:
        model = UserVersionAccess
        fields = ("id", "course", "course_version", "version", "purchase", "granted_at", "is_active", "revoked_at")
        read_only_fields = fields


class ProgressTransferSerializer(serializers.Serializer):
    from_version = serializers.PrimaryKeyRelatedField(queryset=CourseVersion.objects.all())
    to_version = serializers.PrimaryKeyRelatedField(queryset=CourseVersion.objects.all())

    def validate(self, attrs):
        if attrs["from_version"].pk == attrs["to_version"].pk:
            raise serializers.ValidationError("Choose two different versions.")
        return attrs


class NotificationSerializer(serializers.ModelSerializer):
    class Meta:
        model = Notification
        fields = ("id", "type", "course", "message", "read", "created_at")
        read_only_fields = ("type", "course", "message", "created_at")


class SiteSettingsSerializer(serializers.ModelSerializer):
    class Meta:
        model = SiteSettings
        fields = ("site_name", "support_email", "maintenance_mode", "updated_at")
        read_only_fields = ("updated_at",)
