"""Admin diagnostics for the email provider."""
from typing import Dict

from gift_registry import is_valid_email
from ..errors import ValidationError

import email_templates


class EmailDiagnosticsService:
    """Test sends and provider health checks for the admin API.

    Provider failures are reported in the returned dict rather than raised,
    so the admin sees the provider's own message.
    """

    def __init__(self, notifier) -> None:
        self._notifier = notifier

    def run(self, action: str, payload: Dict) -> Dict:
        """Dispatch an ``{action: ...}`` request.

        Raises:
            ValidationError: unknown action or missing parameters.
        """
        if action == 'test':
            return self.send_test(payload.get('email'), payload.get('itemName'))
        if action == 'status':
            return self.status()
        raise ValidationError('Invalid action')

    def send_test(self, email, item_name) -> Dict:
        """Send the donor confirmation template marked as a test."""
        if not email or not item_name:
            raise ValidationError('Missing email or itemName')
        tpl = email_templates.donor_confirmation(str(item_name), self._notifier.registry_name)
        result = self._notifier.send(
            str(email),
            f"TEST: {tpl.subject}",
            f"TEST E-MAIL\n\n{tpl.text}",
            tpl.html.replace('<title>', '<title>TEST: ', 1),
        )
        if not result.success:
            return {'success': False, 'error': result.error}
        return {
            'success': True,
            'message': 'Test email sent successfully',
            'emailId': result.email_id,
        }

    def status(self) -> Dict:
        """Check the API key by listing the provider's domains."""
        ok, count, error = self._notifier.list_domains()
        if not ok:
            return {'success': False, 'service': 'Resend', 'error': error,
                    'apiKeyValid': False}
        return {'success': True, 'service': 'Resend', 'domains': count,
                'apiKeyValid': True}

    def debug_send(self, to) -> Dict:
        """Send a bare plain-text message to *to* and return the raw result."""
        if not is_valid_email(to):
            raise ValidationError('Use ?to=you@mail.ch')
        result = self._notifier.send(
            str(to).strip(),
            f"Test – {self._notifier.registry_name}",
            'Direkter Test aus Production.',
        )
        return result.to_dict()
