from django.test import override_settings
from rest_framework.test import APITestCase

from accounts.models import Role
from accounts.tests.factories import make_user


@override_settings(SLOW_REQUEST_LOG_MS=0)
class SlowRequestLoggingTests(APITestCase):

    def test_slow_request_event_carries_actor(self):
        teacher = make_user('teacher', Role.TEACHER)
        self.client.force_authenticate(teacher)
        with self.assertLogs('erp.middleware', level='WARNING') as logs:
            self.client.get('/api/accounts/me/')
        line = logs.output[0]
        self.assertIn("'event': 'slow_request'", line)
        self.assertIn("'path': '/api/accounts/me/'", line)
        self.assertIn("'status': 200", line)
        self.assertIn(f"'actor_id': {teacher.pk}", line)

    def test_anonymous_request_has_no_actor(self):
        with self.assertLogs('erp.middleware', level='WARNING') as logs:
            self.client.get('/api/accounts/me/')
        self.assertIn("'actor_id': None", logs.output[0])

    def test_health_check_is_not_timed(self):
        with self.assertNoLogs('erp.middleware', level='WARNING'):
            self.client.get('/health/')

    @override_settings(SLOW_REQUEST_LOG_ENABLED=False)
    def test_disabled(self):
        with self.assertNoLogs('erp.middleware', level='WARNING'):
            self.client.get('/api/accounts/me/')
