import logging

from django.core.management.base import BaseCommand
from django.db import transaction
from django.db.models import F
from django.utils import timezone
from django.utils.dateparse import parse_datetime

from exams import models as exam_models
from exams.services import batch_scheduler

logger = logging.getLogger(__name__)

LEGACY_LABEL = 'Legacy window'

Status = exam_models.Test.Status


def convert_legacy_test(test: exam_models.Test, now, reset_to_draft: bool = False) -> exam_models.Batch:
    """Turn a test's legacy {start, end} window into a single batch and clear the legacy field.

    Every student currently rostered in the test's class is assigned to the new
    batch. Only DRAFT tests are converted unless `reset_to_draft` is set, in
    which case live entries are released and the test is forced back to DRAFT
    with a logged transition first.
    """
    window = test.legacy_availability or {}
    start = parse_datetime(str(window.get('start') or ''))
    end = parse_datetime(str(window.get('end') or ''))
    if start is None or end is None or start >= end:
        raise ValueError(f'test {test.pk}: unusable legacy window {window!r}')

    with transaction.atomic():
        current = exam_models.Test.objects.select_for_update().get(pk=test.pk)
        from_state = current.status
        if from_state != Status.DRAFT:
            if not reset_to_draft:
                raise ValueError(f'test {test.pk}: status is {from_state}, rerun with --reset-to-draft')
            batch_scheduler.release_all_entries(current, now)
            exam_models.TestTransitionLog.objects.create(
                test=current,
                from_state=from_state,
                to_state=Status.DRAFT,
                actor=None,
                occurred_at=now,
                forced=True,
            )

        current.batches.all().delete()
        batch = exam_models.Batch.objects.create(
            test=current,
            label=LEGACY_LABEL,
            start_time=start,
            end_time=end,
            capacity=None,
            position=0,
        )
        student_ids = current.school_class.roster_entries.values_list('student_id', flat=True)
        exam_models.BatchStudent.objects.bulk_create([
            exam_models.BatchStudent(batch=batch, test=current, student_id=sid) for sid in student_ids
        ])
        exam_models.Test.objects.filter(pk=current.pk).update(
            legacy_availability=None,
            status=Status.DRAFT,
            updated_at=now,
            version=F('version') + 1,
        )
    return batch


class Command(BaseCommand):
    help = 'Convert tests that still carry a legacy availability window into one batch each.'

    def add_arguments(self, parser):
        parser.add_argument('--dry-run', action='store_true', help='List the tests without converting them.')
        parser.add_argument(
            '--reset-to-draft',
            action='store_true',
            help='Also convert tests past DRAFT, forcing them back to DRAFT first.',
        )

    def handle(self, *args, **options):
        now = timezone.now()
        qs = exam_models.Test.objects.filter(legacy_availability__isnull=False).select_related('school_class')
        converted = 0
        skipped = 0
        for test in qs.iterator():
            if options['dry_run']:
                self.stdout.write(f'Would convert test {test.id} ({test.status}): {test.legacy_availability}')
                continue
            try:
                batch = convert_legacy_test(test, now, reset_to_draft=options['reset_to_draft'])
            except ValueError as exc:
                skipped += 1
                self.stderr.write(f'Skipped {exc}')
                continue
            converted += 1
            logger.info('%s', {
                'event': 'legacy_window_converted',
                'test_id': test.id,
                'batch_id': batch.id,
                'from_status': test.status,
            })
            self.stdout.write(f'Converted test {test.id} into batch {batch.id}')

        self.stdout.write(f'Done. Tests converted: {converted}, skipped: {skipped}')
