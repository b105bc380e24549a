#!/usr/bin/env python3
"""
Tests for EmailNotifier (Resend client) and EmailDiagnosticsService.

Run with:
    python -m pytest tests/test_email_notifier.py
"""
import os
import sys
import unittest
from unittest.mock import MagicMock, patch

import requests

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from email_notifier import EmailNotifier, SendResult
from registry.errors import ValidationError
from registry.services import EmailDiagnosticsService


CONFIG = {
    'resend_api_key': 're_test_key',
    'resend_api_url': 'https://resend.test/',
    'notify_from': 'Registry <noreply@example.ch>',
    'registry_name': 'Baby in Need',
}


# ===========================================================================
# Helpers
# ===========================================================================

def _resp_ok(body=None):
    resp = MagicMock()
    resp.status_code = 200
    resp.raise_for_status.return_value = None
    resp.json.return_value = body if body is not None else {'id': 'em_123'}
    return resp


def _resp_http_error(message='Invalid `to` field'):
    resp = MagicMock()
    resp.status_code = 422
    resp.json.return_value = {'statusCode': 422, 'message': message}
    resp.raise_for_status.side_effect = requests.HTTPError('422 Client Error', response=resp)
    return resp


def _payload(mock_post):
    return mock_post.call_args.kwargs.get('json') or mock_post.call_args[1].get('json')


# ===========================================================================
# EmailNotifier
# ===========================================================================

class TestEmailNotifierGet(unittest.TestCase):

    def test_returns_empty_for_missing_key(self):
        self.assertEqual(EmailNotifier({})._get('resend_api_key'), '')

    def test_returns_empty_for_placeholder(self):
        n = EmailNotifier({'resend_api_key': 'YOUR_RESEND_KEY'})
        self.assertEqual(n._get('resend_api_key'), '')
        self.assertFalse(n.configured)

    def test_defaults(self):
        n = EmailNotifier({})
        self.assertIn('onboarding@resend.dev', n.sender)
        self.assertEqual(n.registry_name, 'Baby in Need')


class TestEmailNotifierSend(unittest.TestCase):

    @patch('email_notifier.requests.post')
    def test_send_success(self, mock_post):
        mock_post.return_value = _resp_ok()
        result = EmailNotifier(CONFIG).send('donor@example.ch', 'Hi', 'Body')
        self.assertTrue(result.success)
        self.assertEqual(result.email_id, 'em_123')
        mock_post.assert_called_once()

    @patch('email_notifier.requests.post')
    def test_send_posts_to_emails_endpoint_with_bearer(self, mock_post):
        mock_post.return_value = _resp_ok()
        EmailNotifier(CONFIG).send('donor@example.ch', 'Hi', 'Body')
        url = mock_post.call_args[0][0]
        headers = mock_post.call_args.kwargs['headers']
        self.assertEqual(url, 'https://resend.test/emails')
        self.assertEqual(headers['Authorization'], 'Bearer re_test_key')

    @patch('email_notifier.requests.post')
    def test_payload_fields(self, mock_post):
        mock_post.return_value = _resp_ok()
        EmailNotifier(CONFIG).send(['a@x.ch', 'b@y.ch'], 'Subject', 'Text', '<p>x</p>')
        payload = _payload(mock_post)
        self.assertEqual(payload['from'], 'Registry <noreply@example.ch>')
        self.assertEqual(payload['to'], ['a@x.ch', 'b@y.ch'])
        self.assertEqual(payload['subject'], 'Subject')
        self.assertEqual(payload['html'], '<p>x</p>')

    @patch('email_notifier.requests.post')
    def test_html_omitted_when_not_given(self, mock_post):
        mock_post.return_value = _resp_ok()
        EmailNotifier(CONFIG).send('a@x.ch', 'Subject', 'Text')
        self.assertNotIn('html', _payload(mock_post))

    @patch('email_notifier.requests.post')
    def test_network_failure_returns_failed_result(self, mock_post):
        mock_post.side_effect = requests.ConnectionError('down')
        result = EmailNotifier(CONFIG).send('a@x.ch', 'Subject', 'Text')
        self.assertFalse(result.success)
        self.assertIn('down', result.error)

    @patch('email_notifier.requests.post')
    def test_provider_error_message_is_reported(self, mock_post):
        mock_post.return_value = _resp_http_error('Invalid `to` field')
        result = EmailNotifier(CONFIG).send('a@x', 'Subject', 'Text')
        self.assertFalse(result.success)
        self.assertEqual(result.error, 'Invalid `to` field')

    @patch('email_notifier.requests.post')
    def test_missing_api_key_never_calls_provider(self, mock_post):
        result = EmailNotifier({}).send('a@x.ch', 'Subject', 'Text')
        self.assertFalse(result.success)
        mock_post.assert_not_called()

    @patch('email_notifier.requests.post')
    def test_donor_confirmation_uses_template(self, mock_post):
        mock_post.return_value = _resp_ok()
        EmailNotifier(CONFIG).send_donor_confirmation('donor@example.ch', 'Tragetuch')
        payload = _payload(mock_post)
        self.assertEqual(payload['to'], ['donor@example.ch'])
        self.assertTrue(payload['subject'].startswith('Reservierung bestätigt'))
        self.assertIn('Tragetuch', payload['text'])

    @patch('email_notifier.requests.post')
    def test_owner_notification_goes_to_all_recipients(self, mock_post):
        mock_post.return_value = _resp_ok()
        EmailNotifier(CONFIG).send_owner_notification(['a@x.ch', 'b@y.ch'], 'Tragetuch')
        payload = _payload(mock_post)
        self.assertEqual(payload['to'], ['a@x.ch', 'b@y.ch'])
        self.assertNotIn('donor', payload['text'])


class TestEmailNotifierDomains(unittest.TestCase):

    @patch('email_notifier.requests.get')
    def test_list_domains_counts(self, mock_get):
        mock_get.return_value = _resp_ok({'data': [{'id': 'd1'}, {'id': 'd2'}]})
        self.assertEqual(EmailNotifier(CONFIG).list_domains(), (True, 2, None))

    @patch('email_notifier.requests.get')
    def test_list_domains_failure(self, mock_get):
        mock_get.side_effect = requests.Timeout('slow')
        ok, count, error = EmailNotifier(CONFIG).list_domains()
        self.assertFalse(ok)
        self.assertEqual(count, 0)
        self.assertIn('slow', error)


# ===========================================================================
# EmailDiagnosticsService
# ===========================================================================

class TestEmailDiagnosticsService(unittest.TestCase):

    def setUp(self):
        self.notifier = MagicMock()
        self.notifier.registry_name = 'Baby in Need'
        self.service = EmailDiagnosticsService(self.notifier)

    def test_test_action_prefixes_subject(self):
        self.notifier.send.return_value = SendResult(True, email_id='em_9')
        result = self.service.run('test', {'email': 'a@x.ch', 'itemName': 'Body'})
        self.assertEqual(result, {'success': True,
                                  'message': 'Test email sent successfully',
                                  'emailId': 'em_9'})
        to, subject, text, html = self.notifier.send.call_args[0]
        self.assertEqual(to, 'a@x.ch')
        self.assertTrue(subject.startswith('TEST: '))
        self.assertTrue(text.startswith('TEST E-MAIL'))
        self.assertIn('<title>TEST: ', html)

    def test_test_action_reports_provider_error(self):
        self.notifier.send.return_value = SendResult(False, error='bad key')
        result = self.service.run('test', {'email': 'a@x.ch', 'itemName': 'Body'})
        self.assertEqual(result, {'success': False, 'error': 'bad key'})

    def test_test_action_requires_parameters(self):
        with self.assertRaises(ValidationError):
            self.service.run('test', {'email': 'a@x.ch'})

    def test_status_action(self):
        self.notifier.list_domains.return_value = (True, 1, None)
        result = self.service.run('status', {})
        self.assertTrue(result['apiKeyValid'])
        self.assertEqual(result['domains'], 1)
        self.assertEqual(result['service'], 'Resend')

    def test_status_action_failure(self):
        self.notifier.list_domains.return_value = (False, 0, 'API key is invalid')
        result = self.service.run('status', {})
        self.assertFalse(result['success'])
        self.assertFalse(result['apiKeyValid'])

    def test_unknown_action(self):
        with self.assertRaises(ValidationError):
            self.service.run('explode', {})

    def test_debug_send_validates_address(self):
        with self.assertRaises(ValidationError):
            self.service.debug_send('nobody')
        self.notifier.send.assert_not_called()


if __name__ == '__main__':
    unittest.main()
