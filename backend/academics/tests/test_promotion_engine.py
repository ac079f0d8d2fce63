from datetime import datetime, timedelta, timezone

from django.test import TestCase

from accounts.models import Role
from accounts.tests.factories import make_user
from academics import models as ac_models
from academics.services import audit_log, promotion_engine, roster
from academics.services.audit_log import RollbackSelector
from erp import exceptions as errors

NOW = datetime(2025, 9, 1, 9, 0, tzinfo=timezone.utc)


class PromotionTestMixin:
    def setUp(self):
        self.admin = make_user('admin', Role.ADMIN)
        self.jss1 = ac_models.SchoolClass.objects.create(name='JSS1', level='JUNIOR_SECONDARY', academic_year='2024/2025')
        self.jss2 = ac_models.SchoolClass.objects.create(name='JSS2', level='JUNIOR_SECONDARY', academic_year='2024/2025')
        self.jss3 = ac_models.SchoolClass.objects.create(name='JSS3', level='JUNIOR_SECONDARY', academic_year='2024/2025')
        self.s1 = make_user('s1', Role.STUDENT)
        self.s2 = make_user('s2', Role.STUDENT)
        self.s3 = make_user('s3', Role.STUDENT)
        for student in (self.s1, self.s2, self.s3):
            roster.admit_student(student, self.jss1, self.admin, NOW)

    def class_of(self, student):
        return ac_models.RosterEntry.objects.get(student=student).school_class_id

    def promote(self, students, from_class, to_class, now=NOW):
        return promotion_engine.promote(
            [s.pk for s in students], from_class, to_class, '2024/2025', 'THIRD', self.admin, now,
        )


class PromoteTests(PromotionTestMixin, TestCase):

    def test_promote_moves_cohort_and_writes_records(self):
        batch = self.promote([self.s1, self.s2], self.jss1, self.jss2)

        self.assertEqual(self.class_of(self.s1), self.jss2.pk)
        self.assertEqual(self.class_of(self.s2), self.jss2.pk)
        self.assertEqual(self.class_of(self.s3), self.jss1.pk)
        self.assertEqual(batch.student_count, 2)
        records = list(batch.records.order_by('id'))
        self.assertEqual([r.student_id for r in records], [self.s1.pk, self.s2.pk])
        for record in records:
            self.assertEqual(record.previous_class_id, self.jss1.pk)
            self.assertEqual(record.new_class_id, self.jss2.pk)
            self.assertEqual(record.promotion_date, NOW)
            self.assertFalse(record.rolled_back)
            self.assertIsNone(record.rollback_date)

    def test_mismatch_rejects_whole_cohort(self):
        self.promote([self.s3], self.jss1, self.jss2)

        with self.assertRaises(errors.RosterMismatch) as ctx:
            self.promote([self.s1, self.s3], self.jss1, self.jss3)

        self.assertEqual(ctx.exception.extra['students'], [{'student_id': self.s3.pk, 'current_class_id': self.jss2.pk}])
        self.assertEqual(self.class_of(self.s1), self.jss1.pk)
        self.assertEqual(self.class_of(self.s3), self.jss2.pk)
        self.assertFalse(ac_models.PromotionRecord.objects.filter(new_class=self.jss3).exists())

    def test_student_without_roster_entry_is_a_mismatch(self):
        outsider = make_user('s4', Role.STUDENT)
        with self.assertRaises(errors.RosterMismatch):
            self.promote([self.s1, outsider], self.jss1, self.jss2)
        self.assertEqual(self.class_of(self.s1), self.jss1.pk)

    def test_empty_cohort(self):
        with self.assertRaises(errors.EmptyCohort):
            promotion_engine.promote([], self.jss1, self.jss2, '2024/2025', 'THIRD', self.admin, NOW)

    def test_duplicate_students_rejected(self):
        with self.assertRaises(errors.ValidationError):
            promotion_engine.promote([self.s1.pk, self.s1.pk], self.jss1, self.jss2, '2024/2025', 'THIRD', self.admin, NOW)

    def test_same_source_and_target_rejected(self):
        with self.assertRaises(errors.ValidationError):
            self.promote([self.s1], self.jss1, self.jss1)

    def test_inactive_target_rejected(self):
        self.jss2.is_active = False
        self.jss2.save()
        with self.assertRaises(errors.ValidationError):
            self.promote([self.s1], self.jss1, self.jss2)
        self.assertEqual(self.class_of(self.s1), self.jss1.pk)

    def test_candidates_are_current_class_members(self):
        self.promote([self.s1], self.jss1, self.jss2)
        candidates = promotion_engine.promotion_candidates(self.jss1)
        self.assertEqual([s.pk for s in candidates], [self.s2.pk, self.s3.pk])


class RollbackTests(PromotionTestMixin, TestCase):

    def test_rollback_restores_roster_once(self):
        batch = self.promote([self.s1, self.s2], self.jss1, self.jss2)
        later = NOW + timedelta(hours=2)

        report = promotion_engine.rollback(RollbackSelector(batch_id=batch.pk), self.admin, later)

        self.assertFalse(report.is_partial)
        self.assertEqual(len(report.succeeded), 2)
        self.assertEqual(self.class_of(self.s1), self.jss1.pk)
        self.assertEqual(self.class_of(self.s2), self.jss1.pk)
        for record in batch.records.all():
            self.assertTrue(record.rolled_back)
            self.assertEqual(record.rollback_date, later)
            self.assertEqual(record.rolled_back_by_id, self.admin.pk)

    def test_second_rollback_is_rejected(self):
        batch = self.promote([self.s1], self.jss1, self.jss2)
        promotion_engine.rollback(RollbackSelector(batch_id=batch.pk), self.admin, NOW)

        with self.assertRaises(errors.AlreadyRolledBack):
            promotion_engine.rollback(RollbackSelector(batch_id=batch.pk), self.admin, NOW + timedelta(minutes=5))
        self.assertEqual(self.class_of(self.s1), self.jss1.pk)

    def test_drifted_student_is_skipped_and_others_revert(self):
        first = self.promote([self.s1, self.s2], self.jss1, self.jss2)
        self.promote([self.s1], self.jss2, self.jss3, now=NOW + timedelta(days=1))

        report = promotion_engine.rollback(RollbackSelector(batch_id=first.pk), self.admin, NOW + timedelta(days=2))

        self.assertTrue(report.is_partial)
        self.assertEqual([s['student_id'] for s in report.succeeded], [self.s2.pk])
        self.assertEqual(report.skipped[0]['code'], errors.RosterDrift.code)
        self.assertEqual(report.skipped[0]['student_id'], self.s1.pk)
        self.assertEqual(self.class_of(self.s1), self.jss3.pk)
        self.assertEqual(self.class_of(self.s2), self.jss1.pk)
        drifted = first.records.get(student=self.s1)
        self.assertFalse(drifted.rolled_back)

    def test_all_drifted_raises(self):
        first = self.promote([self.s1], self.jss1, self.jss2)
        self.promote([self.s1], self.jss2, self.jss3, now=NOW + timedelta(days=1))

        with self.assertRaises(errors.RosterDrift):
            promotion_engine.rollback(RollbackSelector(batch_id=first.pk), self.admin, NOW + timedelta(days=2))
        self.assertFalse(first.records.get().rolled_back)

    def test_tuple_selector_covers_separate_calls(self):
        self.promote([self.s1], self.jss1, self.jss2)
        self.promote([self.s2], self.jss1, self.jss2)
        later = NOW + timedelta(hours=1)

        selector = RollbackSelector(
            session='2024/2025', term='THIRD', promoted_by_id=self.admin.pk, promotion_date=NOW,
            from_class_id=self.jss1.pk, to_class_id=self.jss2.pk,
        )
        report = promotion_engine.rollback(selector, self.admin, later)

        self.assertEqual(len(report.succeeded), 2)
        dates = set(ac_models.PromotionRecord.objects.values_list('rollback_date', flat=True))
        self.assertEqual(dates, {later})

    def test_record_selector_reverts_only_named_records(self):
        batch = self.promote([self.s1, self.s2], self.jss1, self.jss2)
        target = batch.records.get(student=self.s2)

        promotion_engine.rollback(RollbackSelector(record_ids=[target.pk]), self.admin, NOW)

        self.assertEqual(self.class_of(self.s1), self.jss2.pk)
        self.assertEqual(self.class_of(self.s2), self.jss1.pk)

    def test_ambiguous_or_empty_selector_rejected(self):
        batch = self.promote([self.s1], self.jss1, self.jss2)
        with self.assertRaises(errors.ValidationError):
            promotion_engine.rollback(RollbackSelector(), self.admin, NOW)
        with self.assertRaises(errors.ValidationError):
            promotion_engine.rollback(RollbackSelector(batch_id=batch.pk, record_ids=[1]), self.admin, NOW)
        with self.assertRaises(errors.ValidationError):
            promotion_engine.rollback(RollbackSelector(record_ids=[999999]), self.admin, NOW)

    def test_history_is_in_insertion_order(self):
        batch = self.promote([self.s1], self.jss1, self.jss2)
        promotion_engine.rollback(RollbackSelector(batch_id=batch.pk), self.admin, NOW + timedelta(hours=1))
        self.promote([self.s1], self.jss1, self.jss2, now=NOW + timedelta(days=1))

        history = list(audit_log.history_for_student(self.s1.pk))

        self.assertEqual(len(history), 2)
        self.assertTrue(history[0].rolled_back)
        self.assertFalse(history[1].rolled_back)
        self.assertLess(history[0].pk, history[1].pk)
        self.assertEqual(self.class_of(self.s1), self.jss2.pk)


class AdmissionTests(PromotionTestMixin, TestCase):

    def test_cannot_admit_twice(self):
        with self.assertRaises(errors.ValidationError):
            roster.admit_student(self.s1, self.jss2, self.admin, NOW)
        self.assertEqual(self.class_of(self.s1), self.jss1.pk)

    def test_only_students_are_admitted(self):
        teacher = make_user('teacher', Role.TEACHER)
        with self.assertRaises(errors.ValidationError):
            roster.admit_student(teacher, self.jss1, self.admin, NOW)
