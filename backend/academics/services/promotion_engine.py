"""Class promotion and one-time rollback.

`promote` is all-or-nothing across its cohort. `rollback` works record by
record: each record is reverted in its own savepoint so that drift on one
student does not block the others, and the caller receives a report of what
succeeded and what was skipped.
"""
import logging
from dataclasses import dataclass, field
from typing import Dict, List

from django.db import transaction

from academics import models as ac_models
from academics.services import audit_log, roster
from academics.services.audit_log import RollbackSelector
from erp.exceptions import (
    AlreadyRolledBack,
    EmptyCohort,
    RosterDrift,
    RosterMismatch,
    ValidationError,
)

logger = logging.getLogger(__name__)


@dataclass
class RollbackReport:
    succeeded: List[Dict] = field(default_factory=list)
    skipped: List[Dict] = field(default_factory=list)

    @property
    def is_partial(self) -> bool:
        return bool(self.succeeded) and bool(self.skipped)

    def as_dict(self) -> Dict:
        return {'succeeded': self.succeeded, 'skipped': self.skipped}


def _clean_cohort(student_ids) -> List[int]:
    ids = list(student_ids or [])
    if not ids:
        raise EmptyCohort()
    seen, dupes = set(), set()
    for sid in ids:
        if sid in seen:
            dupes.add(sid)
        seen.add(sid)
    if dupes:
        raise ValidationError('Each student may appear only once.', student_ids=sorted(dupes))
    return ids


@transaction.atomic
def promote(student_ids, from_class: ac_models.SchoolClass, to_class: ac_models.SchoolClass,
            session: str, term: str, actor, now) -> ac_models.PromotionBatch:
    """Move a cohort from `from_class` to `to_class` and write one audit record per student.

    Raises RosterMismatch, with every offending student listed, if any student
    is not currently in `from_class`; in that case no roster entry changes.
    """
    ids = _clean_cohort(student_ids)
    if from_class.pk == to_class.pk:
        raise ValidationError('Source and target class must differ.')
    if not session or not term:
        raise ValidationError('session and term are required.')
    if not to_class.is_active:
        raise ValidationError(f'Target class {to_class} is not active.', class_id=to_class.pk)

    entries = roster.lock_entries(ids)
    mismatched = []
    for sid in ids:
        entry = entries.get(sid)
        current = entry.school_class_id if entry is not None else None
        if current != from_class.pk:
            mismatched.append({'student_id': sid, 'current_class_id': current})
    if mismatched:
        logger.warning('%s', {
            'event': 'promotion_rejected',
            'from_class_id': from_class.pk,
            'to_class_id': to_class.pk,
            'mismatched': mismatched,
        })
        raise RosterMismatch(students=mismatched)

    moved = roster.move_students(ids, from_class.pk, to_class.pk, now)
    if moved != len(ids):
        # Lost a race despite the row locks (backend without SELECT ... FOR UPDATE).
        raise RosterMismatch('Roster changed during promotion; nothing was applied.', expected=len(ids), moved=moved)

    batch = ac_models.PromotionBatch.objects.create(
        from_class=from_class,
        to_class=to_class,
        session=session,
        term=term,
        promoted_by=actor,
        promotion_date=now,
        student_count=len(ids),
    )
    records = audit_log.append_promotion_records(batch, ids)

    logger.info('%s', {
        'event': 'students_promoted',
        'batch_id': batch.pk,
        'from_class_id': from_class.pk,
        'to_class_id': to_class.pk,
        'session': session,
        'term': term,
        'actor_id': actor.pk,
        'record_ids': [r.pk for r in records],
    })
    return batch


def _rollback_one(record_id: int, actor, now) -> ac_models.PromotionRecord:
    record = ac_models.PromotionRecord.objects.select_for_update().get(pk=record_id)
    if record.rolled_back:
        raise AlreadyRolledBack(record_id=record.pk, student_id=record.student_id)

    entries = roster.lock_entries([record.student_id])
    entry = entries.get(record.student_id)
    current = entry.school_class_id if entry is not None else None
    if current != record.new_class_id:
        raise RosterDrift(
            record_id=record.pk,
            student_id=record.student_id,
            expected_class_id=record.new_class_id,
            current_class_id=current,
        )

    flipped = ac_models.PromotionRecord.objects.filter(pk=record.pk, rolled_back=False).update(
        rolled_back=True, rollback_date=now, rolled_back_by=actor,
    )
    if not flipped:
        raise AlreadyRolledBack(record_id=record.pk, student_id=record.student_id)

    if not roster.revert_student(record.student_id, record.new_class_id, record.previous_class_id, now):
        raise RosterDrift(record_id=record.pk, student_id=record.student_id, expected_class_id=record.new_class_id)

    record.refresh_from_db()
    return record


def rollback(selector: RollbackSelector, actor, now) -> RollbackReport:
    """Reverse the selected promotion records, once each.

    Returns a RollbackReport. When no record could be reverted the call
    raises instead: AlreadyRolledBack if every target was already reverted,
    otherwise RosterDrift carrying the per-record report.
    """
    records = audit_log.records_for_selector(selector)
    report = RollbackReport()

    for record in records:
        try:
            with transaction.atomic():
                reverted = _rollback_one(record.pk, actor, now)
        except (AlreadyRolledBack, RosterDrift) as exc:
            report.skipped.append(exc.as_dict())
            continue
        report.succeeded.append({
            'record_id': reverted.pk,
            'student_id': reverted.student_id,
            'restored_class_id': reverted.previous_class_id,
        })

    logger.info('%s', {
        'event': 'promotion_rollback',
        'actor_id': actor.pk,
        'succeeded': [s['record_id'] for s in report.succeeded],
        'skipped': [s.get('record_id') for s in report.skipped],
    })

    if not report.succeeded:
        codes = {s['code'] for s in report.skipped}
        if codes == {AlreadyRolledBack.code}:
            raise AlreadyRolledBack(records=report.skipped)
        raise RosterDrift('No selected record could be rolled back.', **report.as_dict())
    return report


def promotion_candidates(school_class: ac_models.SchoolClass):
    """Students currently rostered in `school_class`."""
    return [entry.student for entry in roster.students_in_class(school_class.pk)]

