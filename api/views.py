"""REST API v1 viewsets and endpoints.

State changes on versions, chapters and purchases are routed through the
service modules; their errors are turned into 404/409/503 responses by
`api.exceptions.catalog_exception_handler`.
"""
from __future__ import annotations

from django.db.models import Count, Q
from django.shortcuts import get_object_or_404
from rest_framework import mixins, status, viewsets
from rest_framework.decorators import action, api_view, permission_classes
from rest_framework.exceptions import PermissionDenied, ValidationError
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from activity.models import Notification
from courses import linking, versioning
from courses.models import Category, Chapter, Course, CourseStatus, CourseVersion
from courses.progress import transfer_progress
from purchases import services
from purchases.models import Purchase, UserVersionAccess
from sitesettings.models import SiteSettings
from .permissions import (
    IsAdminRole,
    IsAuthenticatedOrReadOnly,
    IsCatalogManagerOrReadOnly,
    can_manage_course,
    is_admin,
    is_catalog_manager,
)
from .serializers import (
    CategorySerializer,
    ChapterLinkSerializer,
    ChapterSerializer,
    CourseSerializer,
    CourseVersionCreateSerializer,
    CourseVersionDetailSerializer,
    CourseVersionSerializer,
    LinkChaptersSerializer,
    NotificationSerializer,
    ProgressTransferSerializer,
    PublishSerializer,
    PurchaseCreateSerializer,
    PurchaseSerializer,
    SiteSettingsSerializer,
    UserVersionAccessSerializer,
)


def _require_course_manager(user, course: Course) -> None:
    if not can_manage_course(user, course):
        raise PermissionDenied("Only the course author or an admin may change this course.")


class CategoryViewSet(viewsets.ModelViewSet):
    queryset = Category.objects.all()
    serializer_class = CategorySerializer
    permission_classes = [IsCatalogManagerOrReadOnly]
    search_fields = ["name"]


class CourseViewSet(viewsets.ModelViewSet):
    serializer_class = CourseSerializer
    permission_classes = [IsCatalogManagerOrReadOnly]
    filterset_fields = ["status", "category"]
    search_fields = ["title", "description", "author__username"]
    ordering_fields = ["created_at", "updated_at", "title", "price"]

    def get_queryset(self):
        qs = Course.objects.select_related("author__profile", "category")
        user = self.request.user
        if is_admin(user):
            return qs
        # Anonymous users and students only see what is on sale
        visible = Q(status=CourseStatus.PUBLISHED)
        if is_catalog_manager(user):
            visible |= Q(author=user)
        return qs.filter(visible)

    def perform_create(self, serializer):
        serializer.save(author=self.request.user)

    def perform_update(self, serializer):
        _require_course_manager(self.request.user, serializer.instance)
        serializer.save()

    def perform_destroy(self, instance):
        _require_course_manager(self.request.user, instance)
        instance.delete()


class CourseVersionViewSet(viewsets.ModelViewSet):
    permission_classes = [IsCatalogManagerOrReadOnly]
    filterset_fields = ["course", "is_active"]
    ordering_fields = ["version", "published_at"]

    def get_queryset(self):
        qs = CourseVersion.objects.select_related("course").annotate(chapters_count=Count("chapters"))
        user = self.request.user
        if is_admin(user):
            return qs
        visible = Q(course__status=CourseStatus.PUBLISHED, published_at__isnull=False)
        if is_catalog_manager(user):
            visible |= Q(course__author=user)
        return qs.filter(visible)

    def get_serializer_class(self):
        if self.action == "create":
            return CourseVersionCreateSerializer
        if self.action == "retrieve":
            return CourseVersionDetailSerializer
        return CourseVersionSerializer

    def create(self, request, *args, **kwargs):
        serializer = self.get_serializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data
        _require_course_manager(request.user, data["course"])
        version = versioning.create_version(
            data["course"],
            title=data.get("title", ""),
            description=data.get("description", ""),
            changelog=data.get("changelog", ""),
            copy_from=data.get("copy_from"),
        )
        return Response(CourseVersionSerializer(version).data, status=status.HTTP_201_CREATED)

    def perform_update(self, serializer):
        _require_course_manager(self.request.user, serializer.instance.course)
        if "course" in serializer.validated_data and serializer.validated_data["course"] != serializer.instance.course:
            raise ValidationError({"course": "A version cannot move to another course."})
        serializer.save()

    def perform_destroy(self, instance):
        _require_course_manager(self.request.user, instance.course)
        versioning.delete_version(instance)

    def _managed_version(self) -> CourseVersion:
        version = self.get_object()
        _require_course_manager(self.request.user, version.course)
        return version

    @action(detail=True, methods=["post"])
    def activate(self, request, pk=None):
        version = versioning.activate_version(self._managed_version())
        return Response(CourseVersionSerializer(version).data)

    @action(detail=True, methods=["post"])
    def deactivate(self, request, pk=None):
        version = versioning.deactivate_version(self._managed_version())
        return Response(CourseVersionSerializer(version).data)

    @action(detail=True, methods=["post"])
    def publish(self, request, pk=None):
        params = PublishSerializer(data=request.data)
        params.is_valid(raise_exception=True)
        version = versioning.publish_version(self._managed_version(), activate=params.validated_data["activate"])
        return Response(CourseVersionSerializer(version).data)

    @action(detail=True, methods=["get"])
    def compare(self, request, pk=None):
        version = self.get_object()
        other_id = request.query_params.get("with", "")
        if not other_id.isdigit():
            raise ValidationError({"with": "Pass the id of the version to compare against."})
        other = get_object_or_404(self.get_queryset(), pk=other_id)
        return Response(versioning.compare_versions(other, version))

    @action(detail=True, methods=["post"], url_path="link-chapters")
    def link_chapters(self, request, pk=None):
        target = self._managed_version()
        params = LinkChaptersSerializer(data=request.data)
        params.is_valid(raise_exception=True)
        source = params.validated_data.get("source_version") or linking.previous_version(target)
        if source is None:
            raise ValidationError({"source_version": "This is the first version; nothing to link against."})
        report = linking.link_versions(source, target, dry_run=params.validated_data["dry_run"])
        return Response(
            {
                "source_version": source.version,
                "target_version": target.version,
                "linked": report.total_linked,
                "ambiguous": report.ambiguous,
                "failed": report.failed,
                "dry_run": report.dry_run,
            }
        )

    @action(detail=True, methods=["get"])
    def suggestions(self, request, pk=None):
        version = self._managed_version()
        return Response({"suggestions": linking.suggest_links(version)})


class ChapterViewSet(viewsets.ModelViewSet):
    serializer_class = ChapterSerializer
    permission_classes = [IsCatalogManagerOrReadOnly]
    filterset_fields = ["course_version", "is_free"]
    ordering_fields = ["order"]

    def get_queryset(self):
        qs = Chapter.objects.select_related("course_version__course")
        user = self.request.user
        if is_admin(user):
            return qs
        visible = Q(course_version__course__status=CourseStatus.PUBLISHED, course_version__published_at__isnull=False)
        if is_catalog_manager(user):
            visible |= Q(course_version__course__author=user)
        return qs.filter(visible)

    def perform_create(self, serializer):
        _require_course_manager(self.request.user, serializer.validated_data["course_version"].course)
        serializer.save()

    def perform_update(self, serializer):
        _require_course_manager(self.request.user, serializer.instance.course_version.course)
        if serializer.validated_data.get("course_version", serializer.instance.course_version) != serializer.instance.course_version:
            raise ValidationError({"course_version": "A chapter cannot move to another version."})
        serializer.save()

    def perform_destroy(self, instance):
        _require_course_manager(self.request.user, instance.course_version.course)
        instance.delete()

    @action(detail=True, methods=["post"])
    def link(self, request, pk=None):
        chapter = self.get_object()
        _require_course_manager(request.user, chapter.course_version.course)
        params = ChapterLinkSerializer(data=request.data)
        params.is_valid(raise_exception=True)
        chapter = linking.link_chapter(chapter, params.validated_data["original_chapter"])
        return Response(ChapterSerializer(chapter).data)


class PurchaseViewSet(mixins.ListModelMixin, mixins.RetrieveModelMixin, mixins.CreateModelMixin, viewsets.GenericViewSet):
    permission_classes = [IsAuthenticated]
    filterset_fields = ["status", "course"]
    ordering_fields = ["created_at"]

    def get_queryset(self):
        qs = Purchase.objects.select_related("promo_code")
        if is_admin(self.request.user):
            return qs
        return qs.filter(user=self.request.user)

    def get_serializer_class(self):
        if self.action == "create":
            return PurchaseCreateSerializer
        return PurchaseSerializer

    def create(self, request, *args, **kwargs):
        serializer = self.get_serializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data
        purchase = services.create_purchase(
            request.user,
            data["course"],
            course_version=data.get("course_version"),
            promo_code=data.get("promo_code") or None,
        )
        return Response(PurchaseSerializer(purchase).data, status=status.HTTP_201_CREATED)

    # Payment callbacks and support staff drive the status transitions.
    @action(detail=True, methods=["post"], permission_classes=[IsAdminRole])
    def complete(self, request, pk=None):
        return Response(PurchaseSerializer(services.complete_purchase(self.get_object())).data)

    @action(detail=True, methods=["post"], permission_classes=[IsAdminRole])
    def fail(self, request, pk=None):
        return Response(PurchaseSerializer(services.fail_purchase(self.get_object())).data)

    @action(detail=True, methods=["post"], permission_classes=[IsAdminRole])
    def refund(self, request, pk=None):
        return Response(PurchaseSerializer(services.refund_purchase(self.get_object())).data)


class AccessViewSet(viewsets.ReadOnlyModelViewSet):
    serializer_class = UserVersionAccessSerializer
    permission_classes = [IsAuthenticated]
    filterset_fields = ["is_active", "course_version"]

    def get_queryset(self):
        return UserVersionAccess.objects.select_related("course_version").filter(user=self.request.user)


class NotificationViewSet(mixins.ListModelMixin, mixins.RetrieveModelMixin, viewsets.GenericViewSet):
    serializer_class = NotificationSerializer
    permission_classes = [IsAuthenticated]
    filterset_fields = ["read", "type"]

    def get_queryset(self):
        return Notification.objects.filter(user=self.request.user)

    @action(detail=True, methods=["post"], url_path="mark-read")
    def mark_read(self, request, pk=None):
        notification = self.get_object()
        if not notification.read:
            notification.read = True
            notification.save(update_fields=["read"])
        return Response(NotificationSerializer(notification).data)

    @action(detail=False, methods=["post"], url_path="mark-all-read")
    def mark_all_read(self, request):
        updated = self.get_queryset().filter(read=False).update(read=True)
        return Response({"updated": updated})


@api_view(["POST"])
@permission_classes([IsAuthenticated])
def progress_transfer(request):
    """Copy the caller's progress from one version of a course to another."""
    params = ProgressTransferSerializer(data=request.data)
    params.is_valid(raise_exception=True)
    to_version = params.validated_data["to_version"]
    if not (services.has_version_access(request.user, to_version) or is_admin(request.user)):
        raise PermissionDenied("You do not have access to the target version.")
    result = transfer_progress(request.user, params.validated_data["from_version"], to_version)
    return Response(result)


@api_view(["GET", "PATCH"])
@permission_classes([IsAuthenticatedOrReadOnly])
def site_settings(request):
    obj = SiteSettings.load()
    if request.method == "GET":
        return Response(SiteSettingsSerializer(obj).data)
    if not is_admin(request.user):
        raise PermissionDenied("Only admins may change site settings.")
    serializer = SiteSettingsSerializer(obj, data=request.data, partial=True)
    serializer.is_valid(raise_exception=True)
    serializer.save()
    return Response(serializer.data)
