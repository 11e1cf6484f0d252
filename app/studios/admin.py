"""
Django admin configuration for studios and their class schedule.
"""

from django.contrib import admin

from studios.models import ClassSession, Studio


class ClassSessionInline(admin.TabularInline):
    model = ClassSession
    fields = ["name", "start_time", "duration_minutes", "max_capacity", "credit_cost", "is_active"]
    extra = 0
    show_change_link = True


@admin.register(Studio)
class StudioAdmin(admin.ModelAdmin):
    list_display = ["name", "neighborhood", "owner", "is_active", "created_at"]
    list_filter = ["is_active", "neighborhood"]
    search_fields = ["name", "address", "owner__email"]
    inlines = [ClassSessionInline]


@admin.register(ClassSession)
class ClassSessionAdmin(admin.ModelAdmin):
    list_display = [
        "name",
        "studio",
        "start_time",
        "max_capacity",
        "credit_cost",
        "difficulty_level",
        "is_active",
    ]
    list_filter = ["difficulty_level", "class_type", "is_active", "studio"]
    search_fields = ["name", "instructor_name", "studio__name"]
    date_hierarchy = "start_time"
    ordering = ["-start_time"]
