from django.contrib import admin

from . import models


class BatchInline(admin.TabularInline):
    model = models.Batch
    extra = 0
    fields = ('label', 'start_time', 'end_time', 'capacity', 'position', 'is_skipped', 'active_entries')
    readonly_fields = ('is_skipped', 'active_entries')


@admin.register(models.Test)
class TestAdmin(admin.ModelAdmin):
    list_display = ('id', 'title', 'subject', 'school_class', 'session', 'status', 'version', 'created_by')
    list_filter = ('status', 'subject', 'session')
    search_fields = ('title', 'subject')
    # status only moves through the lifecycle service
    readonly_fields = ('status', 'version', 'created_at', 'updated_at')
    inlines = (BatchInline,)


@admin.register(models.BatchStudent)
class BatchStudentAdmin(admin.ModelAdmin):
    list_display = ('student', 'batch', 'test')
    list_filter = ('test',)
    search_fields = ('student__username',)


@admin.register(models.ExamEntry)
class ExamEntryAdmin(admin.ModelAdmin):
    list_display = ('id', 'student', 'test', 'batch', 'issued_at', 'started_at', 'released_at', 'release_reason')
    list_filter = ('release_reason',)
    readonly_fields = [f.name for f in models.ExamEntry._meta.fields]

    def has_add_permission(self, request):
        return False


@admin.register(models.TestTransitionLog)
class TestTransitionLogAdmin(admin.ModelAdmin):
    list_display = ('id', 'test', 'from_state', 'to_state', 'actor', 'occurred_at', 'forced', 'early_close')
    list_filter = ('to_state', 'forced', 'early_close')

    def has_add_permission(self, request):
        return False

    def has_change_permission(self, request, obj=None):
        return False

    def has_delete_permission(self, request, obj=None):
        return False
