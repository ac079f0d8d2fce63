from django.conf import settings
from django.core.validators import RegexValidator
from django.db import models
from django.db.models import Q


class SchoolClass(models.Model):
    """A class (form/grade + section) that students are rostered into."""

    class Level(models.TextChoices):
        PRIMARY = 'PRIMARY', 'Primary'
        JUNIOR_SECONDARY = 'JUNIOR_SECONDARY', 'Junior secondary'
        SENIOR_SECONDARY = 'SENIOR_SECONDARY', 'Senior secondary'
        COLLEGE = 'COLLEGE', 'College'

    name = models.CharField(
        max_length=50,
        unique=True,
        validators=[RegexValidator(r'^[A-Z0-9\s\-]+$', 'Class name can only contain letters, numbers, spaces, and hyphens')],
    )
    level = models.CharField(max_length=20, choices=Level.choices, db_index=True)
    academic_year = models.CharField(
        max_length=9,
        validators=[RegexValidator(r'^\d{4}/\d{4}$', 'Academic year must be in format YYYY/YYYY')],
    )
    is_active = models.BooleanField(default=True, db_index=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ('level', 'name')
        verbose_name = 'Class'
        verbose_name_plural = 'Classes'

    def __str__(self):
        return self.name

    def save(self, *args, **kwargs):
        self.name = (self.name or '').strip().upper()
        super().save(*args, **kwargs)


class RosterEntry(models.Model):
    """Current class of a student.

    Only `academics.services.roster` (admission) and the promotion engine write
    these rows. `version` is bumped on every class change.
    """
    student = models.OneToOneField(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name='roster_entry'
    )
    school_class = models.ForeignKey(
        SchoolClass,
        on_delete=models.PROTECT,
        related_name='roster_entries'
    )
    version = models.PositiveIntegerField(default=1)
    updated_at = models.DateTimeField()

    class Meta:
        verbose_name = 'Roster entry'
        verbose_name_plural = 'Roster'

    def __str__(self):
        return f"{self.student} in {self.school_class}"


class PromotionBatch(models.Model):
    """All records written by a single promote call."""
    from_class = models.ForeignKey(SchoolClass, on_delete=models.PROTECT, related_name='promotion_batches_out')
    to_class = models.ForeignKey(SchoolClass, on_delete=models.PROTECT, related_name='promotion_batches_in')
    session = models.CharField(max_length=32)
    term = models.CharField(max_length=32)
    promoted_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name='promotion_batches'
    )
    promotion_date = models.DateTimeField()
    student_count = models.PositiveIntegerField()

    class Meta:
        ordering = ('id',)
        verbose_name_plural = 'Promotion batches'

    def __str__(self):
        return f"{self.from_class} -> {self.to_class} ({self.session} {self.term})"


class PromotionRecord(models.Model):
    """Append-only audit row; the only permitted update is the one-time rollback flip."""
    batch = models.ForeignKey(PromotionBatch, on_delete=models.PROTECT, related_name='records')
    student = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name='promotion_records'
    )
    previous_class = models.ForeignKey(SchoolClass, on_delete=models.PROTECT, related_name='+')
    new_class = models.ForeignKey(SchoolClass, on_delete=models.PROTECT, related_name='+')
    session = models.CharField(max_length=32)
    term = models.CharField(max_length=32)
    promoted_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name='promotions_made'
    )
    promotion_date = models.DateTimeField()
    rolled_back = models.BooleanField(default=False)
    rollback_date = models.DateTimeField(null=True, blank=True)
    rolled_back_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        null=True,
        blank=True,
        on_delete=models.PROTECT,
        related_name='promotions_rolled_back'
    )

    class Meta:
        ordering = ('id',)
        indexes = [
            models.Index(fields=['session', 'term', 'promoted_by', 'promotion_date'], name='promotion_tuple_idx'),
            models.Index(fields=['student', 'id'], name='promotion_student_idx'),
        ]
        constraints = [
            models.CheckConstraint(
                condition=(
                    Q(rolled_back=False, rollback_date__isnull=True, rolled_back_by__isnull=True)
                    | Q(rolled_back=True, rollback_date__isnull=False, rolled_back_by__isnull=False)
                ),
                name='promotionrecord_rollback_fields_consistent',
            ),
        ]

    def __str__(self):
        flag = ' (rolled back)' if self.rolled_back else ''
        return f"{self.student}: {self.previous_class} -> {self.new_class}{flag}"
