from django.core.exceptions import ValidationError
from django.test import TestCase
from rest_framework.test import APITestCase

from accounts.models import Role, UserRole
from accounts.permissions import require_role
from accounts.tests.factories import make_user


class RoleGateTests(TestCase):
    def setUp(self):
        self.admin = make_user('admin1', Role.ADMIN)
        self.teacher = make_user('teacher1', Role.TEACHER)
        self.student = make_user('student1', Role.STUDENT)

    def test_seeded_roles_exist(self):
        names = set(Role.objects.values_list('name', flat=True))
        self.assertTrue({Role.ADMIN, Role.TEACHER, Role.STUDENT} <= names)

    def test_require_role_matches_any_of(self):
        self.assertTrue(require_role(self.admin, Role.ADMIN))
        self.assertTrue(require_role(self.teacher, Role.ADMIN, Role.TEACHER))
        self.assertFalse(require_role(self.student, Role.ADMIN, Role.TEACHER))

    def test_inactive_or_missing_actor_is_denied(self):
        self.admin.is_active = False
        self.assertFalse(require_role(self.admin, Role.ADMIN))
        self.assertFalse(require_role(None, Role.ADMIN))

    def test_student_cannot_also_hold_staff_role(self):
        with self.assertRaises(ValidationError):
            UserRole(user=self.student, role=Role.objects.get(name=Role.TEACHER)).save()

    def test_staff_may_hold_several_roles(self):
        UserRole(user=self.teacher, role=Role.objects.get(name=Role.ADMIN)).save()
        self.assertEqual(self.teacher.role_names(), {Role.ADMIN, Role.TEACHER})


class MeViewTests(APITestCase):
    def test_me_lists_roles(self):
        user = make_user('teacher2', Role.TEACHER)
        self.client.force_authenticate(user)
        resp = self.client.get('/api/accounts/me/')
        self.assertEqual(resp.status_code, 200)
        self.assertEqual(resp.data['roles'], [Role.TEACHER])

    def test_anonymous_is_rejected(self):
        resp = self.client.get('/api/accounts/me/')
        self.assertEqual(resp.status_code, 401)
