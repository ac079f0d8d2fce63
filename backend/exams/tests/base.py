from datetime import datetime, timedelta, timezone

from accounts.models import Role
from accounts.tests.factories import make_user
from academics import models as ac_models
from academics.services import roster
from exams import models as exam_models
from exams.services import test_lifecycle

NOW = datetime(2025, 10, 1, 8, 0, tzinfo=timezone.utc)

Status = exam_models.Test.Status


def at(hours=0, minutes=0, base=NOW):
    return base + timedelta(hours=hours, minutes=minutes)


class CbtFixtureMixin:
    """Admin, teacher, one class with three rostered students and a draft test."""

    def setUp(self):
        self.admin = make_user('admin', Role.ADMIN)
        self.teacher = make_user('teacher', Role.TEACHER)
        self.school_class = ac_models.SchoolClass.objects.create(
            name='JSS2', level='JUNIOR_SECONDARY', academic_year='2025/2026'
        )
        self.s1 = make_user('s1', Role.STUDENT)
        self.s2 = make_user('s2', Role.STUDENT)
        self.s3 = make_user('s3', Role.STUDENT)
        for student in (self.s1, self.s2, self.s3):
            roster.admit_student(student, self.school_class, self.admin, NOW)
        self.test = self.make_test()

    def make_test(self, **overrides):
        data = {
            'title': 'Mathematics mid-term',
            'subject': 'Mathematics',
            'school_class': self.school_class,
            'session': '2025/2026',
            'duration_minutes': 45,
        }
        data.update(overrides)
        return test_lifecycle.create_test(data, self.teacher)

    def batch(self, label, start, end, students=(), capacity=None):
        return {
            'label': label,
            'start_time': start,
            'end_time': end,
            'capacity': capacity,
            'student_ids': [s.pk for s in students],
        }

    def two_batches(self, capacity=None, base=NOW):
        """Morning batch base+1h..+2h with s1, s2; late morning batch +2h..+3h with s3."""
        return test_lifecycle.replace_batches(self.test, [
            self.batch('Morning', at(1, base=base), at(2, base=base), [self.s1, self.s2], capacity=capacity),
            self.batch('Late morning', at(2, base=base), at(3, base=base), [self.s3]),
        ], self.teacher, base)

    def activate(self, capacity=None, base=NOW):
        """Schedule at `base` and activate when the first batch opens."""
        self.two_batches(capacity=capacity, base=base)
        test_lifecycle.transition_test(self.test, Status.SCHEDULED, self.teacher, base)
        test = test_lifecycle.transition_test(self.test, Status.ACTIVE, self.teacher, at(1, base=base))
        self.test.refresh_from_db()
        return test

    def morning(self):
        return self.test.batches.get(label='Morning')
