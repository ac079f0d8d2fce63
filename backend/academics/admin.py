from django.contrib import admin

from . import models


@admin.register(models.SchoolClass)
class SchoolClassAdmin(admin.ModelAdmin):
    list_display = ('name', 'level', 'academic_year', 'is_active')
    list_filter = ('level', 'academic_year', 'is_active')
    search_fields = ('name',)


class ReadOnlyAdmin(admin.ModelAdmin):
    """Roster and promotion rows change only through the promotion services."""

    def has_add_permission(self, request):
        return False

    def has_change_permission(self, request, obj=None):
        return False

    def has_delete_permission(self, request, obj=None):
        return False


@admin.register(models.RosterEntry)
class RosterEntryAdmin(ReadOnlyAdmin):
    list_display = ('student', 'school_class', 'version', 'updated_at')
    list_filter = ('school_class',)
    search_fields = ('student__username',)


class PromotionRecordInline(admin.TabularInline):
    model = models.PromotionRecord
    extra = 0
    can_delete = False
    fields = ('student', 'previous_class', 'new_class', 'rolled_back', 'rollback_date', 'rolled_back_by')
    readonly_fields = fields


@admin.register(models.PromotionBatch)
class PromotionBatchAdmin(ReadOnlyAdmin):
    list_display = ('id', 'from_class', 'to_class', 'session', 'term', 'promoted_by', 'promotion_date', 'student_count')
    list_filter = ('session', 'term')
    inlines = (PromotionRecordInline,)
    date_hierarchy = 'promotion_date'


@admin.register(models.PromotionRecord)
class PromotionRecordAdmin(ReadOnlyAdmin):
    list_display = ('id', 'student', 'previous_class', 'new_class', 'session', 'term', 'promotion_date', 'rolled_back')
    list_filter = ('session', 'term', 'rolled_back')
    search_fields = ('student__username',)
