from datetime import datetime, timezone

from rest_framework.test import APITestCase

from accounts.models import Role
from accounts.tests.factories import make_user
from academics import models as ac_models
from academics.services import promotion_engine, roster

NOW = datetime(2025, 9, 1, 9, 0, tzinfo=timezone.utc)


class PromotionApiTests(APITestCase):
    def setUp(self):
        self.admin = make_user('admin', Role.ADMIN)
        self.teacher = make_user('teacher', Role.TEACHER)
        self.jss1 = ac_models.SchoolClass.objects.create(name='JSS1', level='JUNIOR_SECONDARY', academic_year='2024/2025')
        self.jss2 = ac_models.SchoolClass.objects.create(name='JSS2', level='JUNIOR_SECONDARY', academic_year='2024/2025')
        self.jss3 = ac_models.SchoolClass.objects.create(name='JSS3', level='JUNIOR_SECONDARY', academic_year='2024/2025')
        self.s1 = make_user('s1', Role.STUDENT)
        self.s2 = make_user('s2', Role.STUDENT)
        for student in (self.s1, self.s2):
            roster.admit_student(student, self.jss1, self.admin, NOW)

    def _promote_payload(self, students, to_class):
        return {
            'student_ids': [s.pk for s in students],
            'from_class_id': self.jss1.pk,
            'to_class_id': to_class.pk,
            'session': '2024/2025',
            'term': 'THIRD',
        }

    def test_teacher_cannot_promote(self):
        self.client.force_authenticate(self.teacher)
        resp = self.client.post('/api/promotions/', self._promote_payload([self.s1], self.jss2), format='json')
        self.assertEqual(resp.status_code, 403)
        self.assertEqual(ac_models.RosterEntry.objects.get(student=self.s1).school_class_id, self.jss1.pk)

    def test_admin_promotes(self):
        self.client.force_authenticate(self.admin)
        resp = self.client.post('/api/promotions/', self._promote_payload([self.s1, self.s2], self.jss2), format='json')
        self.assertEqual(resp.status_code, 200)
        self.assertEqual(len(resp.data['record_ids']), 2)

    def test_empty_cohort_code(self):
        self.client.force_authenticate(self.admin)
        resp = self.client.post('/api/promotions/', self._promote_payload([], self.jss2), format='json')
        self.assertEqual(resp.status_code, 400)
        self.assertEqual(resp.data['code'], 'EMPTY_COHORT')

    def test_mismatch_is_conflict(self):
        self.client.force_authenticate(self.admin)
        payload = self._promote_payload([self.s1], self.jss2)
        payload['from_class_id'] = self.jss3.pk
        resp = self.client.post('/api/promotions/', payload, format='json')
        self.assertEqual(resp.status_code, 409)
        self.assertEqual(resp.data['code'], 'ROSTER_MISMATCH')
        self.assertEqual(resp.data['students'][0]['student_id'], self.s1.pk)

    def test_partial_rollback_is_multi_status(self):
        batch = promotion_engine.promote([self.s1.pk, self.s2.pk], self.jss1, self.jss2, '2024/2025', 'THIRD', self.admin, NOW)
        promotion_engine.promote([self.s1.pk], self.jss2, self.jss3, '2025/2026', 'FIRST', self.admin, NOW)

        self.client.force_authenticate(self.admin)
        resp = self.client.post('/api/promotions/rollback/', {'batch_id': batch.pk}, format='json')

        self.assertEqual(resp.status_code, 207)
        self.assertEqual(len(resp.data['succeeded']), 1)
        self.assertEqual(resp.data['skipped'][0]['code'], 'ROSTER_DRIFT')

    def test_repeat_rollback_is_conflict(self):
        batch = promotion_engine.promote([self.s1.pk], self.jss1, self.jss2, '2024/2025', 'THIRD', self.admin, NOW)
        self.client.force_authenticate(self.admin)

        first = self.client.post('/api/promotions/rollback/', {'batch_id': batch.pk}, format='json')
        second = self.client.post('/api/promotions/rollback/', {'batch_id': batch.pk}, format='json')

        self.assertEqual(first.status_code, 200)
        self.assertEqual(second.status_code, 409)
        self.assertEqual(second.data['code'], 'ALREADY_ROLLED_BACK')

    def test_teacher_reads_history(self):
        promotion_engine.promote([self.s1.pk], self.jss1, self.jss2, '2024/2025', 'THIRD', self.admin, NOW)
        self.client.force_authenticate(self.teacher)

        resp = self.client.get('/api/promotions/history/', {'student_id': self.s1.pk})

        self.assertEqual(resp.status_code, 200)
        self.assertEqual(len(resp.data), 1)
        self.assertEqual(resp.data[0]['new_class'], 'JSS2')

    def test_history_requires_student_id(self):
        self.client.force_authenticate(self.teacher)
        resp = self.client.get('/api/promotions/history/')
        self.assertEqual(resp.status_code, 400)
        self.assertEqual(resp.data['code'], 'VALIDATION_ERROR')
        self.assertEqual(resp.data['param'], 'student_id')

    def test_student_cannot_read_history(self):
        self.client.force_authenticate(self.s1)
        resp = self.client.get('/api/promotions/history/', {'student_id': self.s1.pk})
        self.assertEqual(resp.status_code, 403)

    def test_candidates_and_classes(self):
        self.client.force_authenticate(self.teacher)
        resp = self.client.get(f'/api/promotions/candidates/{self.jss1.pk}/')
        self.assertEqual(resp.status_code, 200)
        self.assertEqual([s['id'] for s in resp.data['students']], [self.s1.pk, self.s2.pk])

        resp = self.client.get('/api/academics/classes/')
        self.assertEqual(resp.status_code, 200)
        counts = {c['name']: c['student_count'] for c in resp.data}
        self.assertEqual(counts['JSS1'], 2)

    def test_admin_creates_class_and_admits(self):
        self.client.force_authenticate(self.admin)
        resp = self.client.post('/api/academics/classes/', {
            'name': 'ss1', 'level': 'SENIOR_SECONDARY', 'academic_year': '2025/2026',
        }, format='json')
        self.assertEqual(resp.status_code, 201)
        self.assertEqual(resp.data['name'], 'SS1')

        newcomer = make_user('s3', Role.STUDENT)
        resp = self.client.post('/api/promotions/admissions/', {
            'student_id': newcomer.pk, 'class_id': resp.data['id'],
        }, format='json')
        self.assertEqual(resp.status_code, 201)
