"""Roster store access.

RosterEntry rows are written only from here. Class changes are
compare-and-swap updates keyed on the class the caller expects the student to
be in, so a stale view can never overwrite a newer move.
"""
import logging
from typing import Dict, Iterable, List

from django.db import IntegrityError, transaction
from django.db.models import F

from academics import models as ac_models
from erp.exceptions import ValidationError

logger = logging.getLogger(__name__)


@transaction.atomic
def admit_student(student, school_class: ac_models.SchoolClass, actor, now) -> ac_models.RosterEntry:
    """Place a student with no roster entry into their first class."""
    if not getattr(student, 'has_role', None) or not student.has_role('STUDENT'):
        raise ValidationError(f'User {student.pk} is not a student.', student_id=student.pk)
    if not school_class.is_active:
        raise ValidationError(f'Class {school_class} is not active.', class_id=school_class.pk)

    try:
        with transaction.atomic():
            entry = ac_models.RosterEntry.objects.create(student=student, school_class=school_class, updated_at=now)
    except IntegrityError:
        raise ValidationError(
            f'Student {student.pk} is already on the roster; use a promotion to move them.',
            student_id=student.pk,
        )

    logger.info('%s', {
        'event': 'student_admitted',
        'student_id': student.pk,
        'class_id': school_class.pk,
        'actor_id': getattr(actor, 'pk', None),
    })
    return entry


def lock_entries(student_ids: Iterable[int]) -> Dict[int, ac_models.RosterEntry]:
    """Row-lock and return roster entries keyed by student id. Call inside a transaction."""
    qs = ac_models.RosterEntry.objects.select_for_update().filter(student_id__in=list(student_ids))
    return {e.student_id: e for e in qs}


def move_students(student_ids: List[int], from_class_id: int, to_class_id: int, now) -> int:
    """Move every listed student still in `from_class_id`; returns rows changed."""
    return ac_models.RosterEntry.objects.filter(
        student_id__in=student_ids,
        school_class_id=from_class_id,
    ).update(school_class_id=to_class_id, version=F('version') + 1, updated_at=now)


def revert_student(student_id: int, expected_class_id: int, restore_class_id: int, now) -> bool:
    changed = ac_models.RosterEntry.objects.filter(
        student_id=student_id,
        school_class_id=expected_class_id,
    ).update(school_class_id=restore_class_id, version=F('version') + 1, updated_at=now)
    return changed == 1


def current_class_ids(student_ids: Iterable[int]) -> Dict[int, int]:
    return dict(
        ac_models.RosterEntry.objects.filter(student_id__in=list(student_ids)).values_list('student_id', 'school_class_id')
    )


def students_in_class(school_class_id: int):
    return ac_models.RosterEntry.objects.filter(school_class_id=school_class_id).select_related('student').order_by('student_id')
