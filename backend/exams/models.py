from django.conf import settings
from django.core.validators import MinValueValidator
from django.db import models
from django.db.models import F, Q


class Test(models.Model):
    class Status(models.TextChoices):
        DRAFT = 'DRAFT', 'Draft'
        SCHEDULED = 'SCHEDULED', 'Scheduled'
        ACTIVE = 'ACTIVE', 'Active'
        COMPLETED = 'COMPLETED', 'Completed'
        ARCHIVED = 'ARCHIVED', 'Archived'

    title = models.CharField(max_length=200)
    subject = models.CharField(max_length=100)
    school_class = models.ForeignKey(
        'academics.SchoolClass',
        on_delete=models.PROTECT,
        related_name='tests'
    )
    session = models.CharField(max_length=32)
    instructions = models.TextField(blank=True)
    duration_minutes = models.PositiveIntegerField(validators=[MinValueValidator(1)])
    total_marks = models.PositiveIntegerField(default=100)

    status = models.CharField(max_length=20, choices=Status.choices, default=Status.DRAFT, db_index=True)
    # Bumped on every status change and batch edit; status writes are conditional on it.
    version = models.PositiveIntegerField(default=1)

    # Pre-batch single availability window {"start": iso, "end": iso}. Cleared by backfill_test_batches.
    legacy_availability = models.JSONField(null=True, blank=True)

    created_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name='tests_created'
    )
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ('-created_at', '-id')

    def __str__(self):
        return f"{self.title} ({self.status})"


class Batch(models.Model):
    """A timed sitting of a test for a fixed group of students."""
    test = models.ForeignKey(Test, on_delete=models.CASCADE, related_name='batches')
    label = models.CharField(max_length=100)
    start_time = models.DateTimeField()
    end_time = models.DateTimeField()
    capacity = models.PositiveIntegerField(null=True, blank=True, validators=[MinValueValidator(1)])
    position = models.PositiveIntegerField(default=0)
    is_skipped = models.BooleanField(default=False)
    # Slots currently held by live entries. Only batch_scheduler writes this.
    active_entries = models.PositiveIntegerField(default=0)

    class Meta:
        ordering = ('test', 'position', 'id')
        verbose_name_plural = 'Batches'
        constraints = [
            models.CheckConstraint(condition=Q(start_time__lt=F('end_time')), name='batch_start_before_end'),
            models.CheckConstraint(
                condition=Q(capacity__isnull=True) | Q(capacity__gte=1),
                name='batch_capacity_positive',
            ),
        ]

    def __str__(self):
        return f"{self.test_id}/{self.label}"

    def contains(self, moment) -> bool:
        return self.start_time <= moment < self.end_time


class BatchStudent(models.Model):
    batch = models.ForeignKey(Batch, on_delete=models.CASCADE, related_name='assignments')
    # Denormalised from batch for per-test lookups.
    test = models.ForeignKey(Test, on_delete=models.CASCADE, related_name='assignments')
    student = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name='batch_assignments'
    )

    class Meta:
        constraints = [
            models.UniqueConstraint(fields=['batch', 'student'], name='unique_student_per_batch'),
        ]

    def __str__(self):
        return f"{self.student} in {self.batch}"


class ExamEntry(models.Model):
    class ReleaseReason(models.TextChoices):
        TIMEOUT = 'TIMEOUT', 'Not started in time'
        ENDED = 'ENDED', 'Session ended'
        WINDOW_CLOSED = 'WINDOW_CLOSED', 'Batch window closed'

    test = models.ForeignKey(Test, on_delete=models.CASCADE, related_name='entries')
    batch = models.ForeignKey(Batch, on_delete=models.CASCADE, related_name='entries')
    student = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name='exam_entries'
    )
    token = models.CharField(max_length=64, unique=True)
    issued_at = models.DateTimeField()
    start_deadline = models.DateTimeField()
    expires_at = models.DateTimeField()
    started_at = models.DateTimeField(null=True, blank=True)
    released_at = models.DateTimeField(null=True, blank=True)
    release_reason = models.CharField(max_length=20, choices=ReleaseReason.choices, blank=True)

    class Meta:
        ordering = ('id',)
        verbose_name_plural = 'Exam entries'
        indexes = [
            models.Index(fields=['batch', 'released_at'], name='examentry_batch_live_idx'),
        ]

    def __str__(self):
        return f"{self.student} -> {self.test_id} ({self.batch.label})"


class TestTransitionLog(models.Model):
    """Append-only record of every committed status change."""
    test = models.ForeignKey(Test, on_delete=models.CASCADE, related_name='transitions')
    from_state = models.CharField(max_length=20, choices=Test.Status.choices)
    to_state = models.CharField(max_length=20, choices=Test.Status.choices)
    actor = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        null=True,
        blank=True,
        on_delete=models.PROTECT,
        related_name='test_transitions'
    )
    occurred_at = models.DateTimeField()
    forced = models.BooleanField(default=False)
    early_close = models.BooleanField(default=False)

    class Meta:
        ordering = ('id',)

    def __str__(self):
        return f"{self.test_id}: {self.from_state} -> {self.to_state}"
