"""Entry authorization for ACTIVE tests.

A student may enter only during their own batch window, and only while the
batch has a free capacity slot. Slots are taken with a conditional UPDATE on
`Batch.active_entries` so two concurrent requests can never both take the
last one. Slots come back when an entry is ended, when it is never started
before its deadline, or when the batch window closes; expired entries are
reaped lazily at the start of every authorization.
"""
import logging
import secrets
from datetime import timedelta
from typing import Dict, List

from django.conf import settings
from django.db import transaction
from django.db.models import F

from exams import models as exam_models
from erp.exceptions import (
    CapacityExceeded,
    DataIntegrityWarning,
    EntryExpired,
    NotEnrolled,
    OutsideWindow,
    TestNotActive,
    ValidationError,
)

logger = logging.getLogger(__name__)

Reason = exam_models.ExamEntry.ReleaseReason


def _idle_timeout() -> timedelta:
    return timedelta(minutes=settings.CBT_ENTRY_IDLE_TIMEOUT_MINUTES)


def _release(entry_id: int, batch_id: int, now, reason: str) -> bool:
    """Release one live entry and give its slot back. No-op if already released."""
    changed = exam_models.ExamEntry.objects.filter(pk=entry_id, released_at__isnull=True).update(
        released_at=now,
        release_reason=reason,
    )
    if changed:
        exam_models.Batch.objects.filter(pk=batch_id, active_entries__gt=0).update(
            active_entries=F('active_entries') - 1
        )
    return bool(changed)


def release_expired_entries(batch: exam_models.Batch, now) -> int:
    """Reap entries never started before their deadline, and started entries past the window."""
    live = exam_models.ExamEntry.objects.filter(batch_id=batch.pk, released_at__isnull=True)
    timed_out = list(live.filter(started_at__isnull=True, start_deadline__lte=now).values_list('id', flat=True))
    closed = list(live.filter(started_at__isnull=False, expires_at__lte=now).values_list('id', flat=True))

    released = 0
    for entry_id in timed_out:
        released += _release(entry_id, batch.pk, now, Reason.TIMEOUT)
    for entry_id in closed:
        released += _release(entry_id, batch.pk, now, Reason.WINDOW_CLOSED)

    if released:
        logger.info('%s', {
            'event': 'entries_released',
            'batch_id': batch.pk,
            'timed_out': len(timed_out),
            'window_closed': len(closed),
        })
    return released


def release_all_entries(test: exam_models.Test, now) -> int:
    """Close every live entry of a test; used when the test leaves ACTIVE."""
    released = 0
    live = exam_models.ExamEntry.objects.filter(test_id=test.pk, released_at__isnull=True)
    for entry_id, batch_id in live.values_list('id', 'batch_id'):
        released += _release(entry_id, batch_id, now, Reason.WINDOW_CLOSED)
    return released


def _enrolled_batches(test: exam_models.Test, student) -> List[exam_models.Batch]:
    qs = exam_models.BatchStudent.objects.filter(test_id=test.pk, student_id=student.pk).select_related('batch')
    return sorted((a.batch for a in qs), key=lambda b: (b.start_time, b.pk))


def _pick_open_batch(test, student, batches, now) -> exam_models.Batch:
    open_batches = [b for b in batches if not b.is_skipped and b.contains(now)]
    if not open_batches:
        first = batches[0]
        raise OutsideWindow(
            batch_id=first.pk,
            window_start=first.start_time.isoformat(),
            window_end=first.end_time.isoformat(),
        )
    if len(open_batches) > 1:
        # batches are sorted by start time, so the first one wins
        logger.warning('%s', {
            'event': 'overlapping_batch_assignment',
            'category': DataIntegrityWarning.__name__,
            'test_id': test.pk,
            'student_id': student.pk,
            'batch_ids': [b.pk for b in open_batches],
            'chosen_batch_id': open_batches[0].pk,
        })
    return open_batches[0]


def _take_slot(batch: exam_models.Batch) -> None:
    qs = exam_models.Batch.objects.filter(pk=batch.pk)
    if batch.capacity is not None:
        qs = qs.filter(active_entries__lt=F('capacity'))
    if not qs.update(active_entries=F('active_entries') + 1):
        raise CapacityExceeded(batch_id=batch.pk, capacity=batch.capacity)


@transaction.atomic
def authorize_entry(test: exam_models.Test, student, now) -> exam_models.ExamEntry:
    """Authorize `student` to enter `test` at `now` and return their entry.

    A student who already holds a live entry for the batch gets it back
    without using a second slot.
    """
    test = exam_models.Test.objects.get(pk=test.pk)
    if test.status != exam_models.Test.Status.ACTIVE:
        raise TestNotActive(test_id=test.pk, status=test.status)

    batches = _enrolled_batches(test, student)
    if not batches:
        raise NotEnrolled(test_id=test.pk)

    batch = _pick_open_batch(test, student, batches, now)
    release_expired_entries(batch, now)

    existing = exam_models.ExamEntry.objects.filter(
        batch_id=batch.pk, student_id=student.pk, released_at__isnull=True
    ).first()
    if existing is not None:
        return existing

    _take_slot(batch)
    entry = exam_models.ExamEntry.objects.create(
        test=test,
        batch=batch,
        student=student,
        token=secrets.token_urlsafe(32),
        issued_at=now,
        start_deadline=min(now + _idle_timeout(), batch.end_time),
        expires_at=batch.end_time,
    )
    logger.info('%s', {
        'event': 'entry_authorized',
        'test_id': test.pk,
        'batch_id': batch.pk,
        'student_id': student.pk,
        'entry_id': entry.pk,
    })
    return entry


def _get_entry(token: str) -> exam_models.ExamEntry:
    entry = exam_models.ExamEntry.objects.select_for_update().select_related('test').filter(token=token).first()
    if entry is None:
        raise ValidationError('Unknown entry token.')
    return entry


def start_session(token: str, now) -> exam_models.ExamEntry:
    """Mark the entry started. Raises EntryExpired once the start deadline has passed."""
    with transaction.atomic():
        entry = _get_entry(token)
        if entry.released_at is not None:
            raise EntryExpired(reason=entry.release_reason)
        if entry.started_at is not None:
            return entry
        if entry.test.status != exam_models.Test.Status.ACTIVE:
            raise TestNotActive(test_id=entry.test_id, status=entry.test.status)
        if now < entry.start_deadline:
            entry.started_at = now
            entry.save(update_fields=['started_at'])
            return entry
        # the release must commit before the caller sees the error
        _release(entry.pk, entry.batch_id, now, Reason.TIMEOUT)

    raise EntryExpired(reason=Reason.TIMEOUT)


@transaction.atomic
def end_session(token: str, now) -> exam_models.ExamEntry:
    """Release the entry's slot. Ending an already released entry is a no-op."""
    entry = _get_entry(token)
    if entry.released_at is None:
        _release(entry.pk, entry.batch_id, now, Reason.ENDED)
        entry.refresh_from_db()
        logger.info('%s', {'event': 'session_ended', 'entry_id': entry.pk, 'student_id': entry.student_id})
    return entry


def available_tests_for_student(student, now) -> List[Dict]:
    """ACTIVE tests the student is assigned to, with their batch and whether it is open now."""
    assignments = exam_models.BatchStudent.objects.filter(
        student_id=student.pk,
        test__status=exam_models.Test.Status.ACTIVE,
    ).select_related('test', 'batch').order_by('batch__start_time', 'batch_id')

    seen = set()
    results = []
    for a in assignments:
        if a.test_id in seen:
            continue
        seen.add(a.test_id)
        results.append({
            'test': a.test,
            'batch': a.batch,
            'is_open': not a.batch.is_skipped and a.batch.contains(now),
        })
    return results
