from django.contrib import admin, messages
from django.db.models import Count

from .exceptions import CatalogError
from .models import Category, Chapter, Course, CourseVersion
from .models_progress import ChapterProgress
from .versioning import activate_version


@admin.register(Category)
class CategoryAdmin(admin.ModelAdmin):
    list_display = ("name", "slug")
    prepopulated_fields = {"slug": ("name",)}


@admin.register(Course)
class CourseAdmin(admin.ModelAdmin):
    list_display = ("title", "status", "price", "category", "author", "created_at")
    list_filter = ("status", "category")
    search_fields = ("title", "slug", "author__username")
    prepopulated_fields = {"slug": ("title",)}


class ChapterInline(admin.TabularInline):
    model = Chapter
    fk_name = "course_version"
    fields = ("order", "title", "is_free", "original_chapter")
    raw_id_fields = ("original_chapter",)
    extra = 0


@admin.register(CourseVersion)
class CourseVersionAdmin(admin.ModelAdmin):
    list_display = ("course", "version", "title", "is_active", "published_at", "chapter_count")
    list_filter = ("is_active", "course")
    search_fields = ("title", "course__title")
    # Activation goes through the action so siblings are cleared atomically.
    readonly_fields = ("is_active",)
    inlines = [ChapterInline]
    actions = ["make_active"]

    def get_queryset(self, request):
        return super().get_queryset(request).annotate(_chapters=Count("chapters"))

    @admin.display(description="Chapters", ordering="_chapters")
    def chapter_count(self, obj):
        return obj._chapters

    @admin.action(description="Activate selected version")
    def make_active(self, request, queryset):
        if queryset.count() != 1:
            self.message_user(request, "Select exactly one version to activate.", level=messages.ERROR)
            return
        try:
            version = activate_version(queryset.get())
        except CatalogError as exc:
            self.message_user(request, str(exc), level=messages.ERROR)
            return
        self.message_user(request, f"Activated v{version.version}.")


@admin.register(Chapter)
class ChapterAdmin(admin.ModelAdmin):
    list_display = ("title", "course_version", "order", "original_chapter")
    list_filter = ("course_version__course",)
    search_fields = ("title",)
    raw_id_fields = ("original_chapter",)


@admin.register(ChapterProgress)
class ChapterProgressAdmin(admin.ModelAdmin):
    list_display = ("user", "chapter", "course_version", "is_completed", "watch_percentage")
    list_filter = ("is_completed",)
    search_fields = ("user__username", "chapter__title")
