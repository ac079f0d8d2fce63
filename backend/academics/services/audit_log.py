"""Access layer for the append-only promotion audit log."""
from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, List, Optional

from academics import models as ac_models
from erp.exceptions import ValidationError


@dataclass
class RollbackSelector:
    """Which promotion records a rollback targets.

    Exactly one form is used: explicit `record_ids`, a `batch_id`, or the
    legacy grouping tuple (session, term, promoted_by, promotion_date,
    from_class, to_class).
    """
    record_ids: List[int] = field(default_factory=list)
    batch_id: Optional[int] = None
    session: Optional[str] = None
    term: Optional[str] = None
    promoted_by_id: Optional[int] = None
    promotion_date: Optional[datetime] = None
    from_class_id: Optional[int] = None
    to_class_id: Optional[int] = None

    def tuple_fields(self) -> Dict[str, object]:
        return {
            'session': self.session,
            'term': self.term,
            'promoted_by_id': self.promoted_by_id,
            'promotion_date': self.promotion_date,
            'previous_class_id': self.from_class_id,
            'new_class_id': self.to_class_id,
        }

    def mode(self) -> str:
        tuple_given = [v is not None for v in self.tuple_fields().values()]
        modes = []
        if self.record_ids:
            modes.append('records')
        if self.batch_id is not None:
            modes.append('batch')
        if any(tuple_given):
            if not all(tuple_given):
                raise ValidationError('A tuple selector needs session, term, promoted_by, promotion_date, from_class and to_class.')
            modes.append('tuple')
        if len(modes) != 1:
            raise ValidationError('Select records by exactly one of record_ids, batch_id or the promotion tuple.')
        return modes[0]


def append_promotion_records(batch: ac_models.PromotionBatch, student_ids: List[int]) -> List[ac_models.PromotionRecord]:
    rows = [
        ac_models.PromotionRecord(
            batch=batch,
            student_id=sid,
            previous_class_id=batch.from_class_id,
            new_class_id=batch.to_class_id,
            session=batch.session,
            term=batch.term,
            promoted_by_id=batch.promoted_by_id,
            promotion_date=batch.promotion_date,
        )
        for sid in student_ids
    ]
    ac_models.PromotionRecord.objects.bulk_create(rows)
    # bulk_create does not return pks on every backend; re-read in insertion order.
    return list(ac_models.PromotionRecord.objects.filter(batch=batch).order_by('id'))


def records_for_selector(selector: RollbackSelector):
    mode = selector.mode()
    qs = ac_models.PromotionRecord.objects.order_by('id')

    if mode == 'records':
        wanted = set(selector.record_ids)
        qs = qs.filter(pk__in=wanted)
        missing = wanted - set(qs.values_list('pk', flat=True))
        if missing:
            raise ValidationError('Unknown promotion record id(s).', record_ids=sorted(missing))
    elif mode == 'batch':
        qs = qs.filter(batch_id=selector.batch_id)
    else:
        qs = qs.filter(**selector.tuple_fields())

    records = list(qs)
    if not records:
        raise ValidationError('No promotion records match the selector.')
    return records


def history_for_student(student_id: int):
    """All promotion records for a student, oldest first."""
    return (
        ac_models.PromotionRecord.objects
        .filter(student_id=student_id)
        .select_related('previous_class', 'new_class', 'promoted_by', 'rolled_back_by')
        .order_by('id')
    )
