from django.contrib.auth import get_user_model
from django.test import RequestFactory, TestCase
from django.urls import reverse

from .audit import log_audit_event
from .models import AuditLog


class RoleAccessTests(TestCase):
    def setUp(self):
        self.user_model = get_user_model()
        self.teacher = self.user_model.objects.create_user(
            username='teacher1',
            password='pass12345',
            role='teacher',
        )
        self.accountant = self.user_model.objects.create_user(
            username='accountant1',
            password='pass12345',
            role='accountant',
        )

    def test_anonymous_user_is_sent_to_login(self):
        response = self.client.get(reverse('trust_manage'))
        self.assertEqual(response.status_code, 302)
        self.assertIn(reverse('login'), response.url)

    def test_teacher_cannot_access_trust_screens(self):
        self.client.login(username='teacher1', password='pass12345')
        response = self.client.get(reverse('trust_manage'))
        self.assertEqual(response.status_code, 403)

    def test_accountant_is_redirected_to_trusts_from_dashboard(self):
        self.client.login(username='accountant1', password='pass12345')
        response = self.client.get(reverse('role_redirect'))
        self.assertRedirects(response, reverse('trust_manage'))

    def test_teacher_sees_plain_dashboard(self):
        self.client.login(username='teacher1', password='pass12345')
        response = self.client.get(reverse('role_redirect'))
        self.assertEqual(response.status_code, 200)

    def test_superuser_role_is_forced(self):
        admin = self.user_model.objects.create_superuser('root', 'root@example.com', 'pass12345')
        self.assertEqual(admin.role, 'superadmin')
        admin.role = 'teacher'
        admin.save()
        admin.refresh_from_db()
        self.assertEqual(admin.role, 'superadmin')
        self.assertTrue(admin.can_manage_trusts)


class AuditLogTests(TestCase):
    def setUp(self):
        self.user = get_user_model().objects.create_user(
            username='auditor',
            password='pass12345',
            role='accountant',
        )
        self.factory = RequestFactory()

    def test_log_audit_event_records_request_details(self):
        request = self.factory.post('/trusts/inflow/', HTTP_X_FORWARDED_FOR='10.0.0.5, 10.0.0.1')
        request.user = self.user

        entry = log_audit_event(request, 'trusts.inflow_added', target=self.user, details='Amount=10')

        self.assertEqual(AuditLog.objects.count(), 1)
        self.assertEqual(entry.ip_address, '10.0.0.5')
        self.assertEqual(entry.target_model, 'User')
        self.assertEqual(entry.target_id, str(self.user.pk))
        self.assertEqual(entry.method, 'POST')

    def test_login_and_logout_are_audited(self):
        self.client.login(username='auditor', password='pass12345')
        self.client.post(reverse('logout'))

        actions = list(AuditLog.objects.order_by('id').values_list('action', flat=True))
        self.assertEqual(actions, ['user.login', 'user.logout'])
        self.assertTrue(AuditLog.objects.filter(action='user.login', user=self.user).exists())
