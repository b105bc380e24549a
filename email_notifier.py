"""
email_notifier.py
=================
Send transactional email for the gift registry through the Resend HTTP API.

Two messages exist:

* **Donor confirmation**: sent to the person who reserved an item.
* **Owner notification**: sent to the registry owners' recipient list.

Sending never raises for delivery problems; every call returns a
:class:`SendResult` and logs the failure, so callers decide whether a failed
send matters.

Configuration
-------------
The notifier reads these keys from the application config dict::

    "resend_api_key": "re_...",
    "resend_api_url": "https://api.resend.com",
    "notify_from":    "Baby in Need <noreply@example.ch>",
    "registry_name":  "Baby in Need"

Usage
-----
::

    from email_notifier import EmailNotifier

    notifier = EmailNotifier(config)
    result = notifier.send_donor_confirmation('donor@example.ch', 'Tragetuch')
    if not result.success:
        ...
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Dict, List, NamedTuple, Optional, Sequence, Tuple, Union

import requests

import email_templates

logger = logging.getLogger('gift_registry.email')

_DEFAULT_TIMEOUT = 10  # seconds
_DEFAULT_API_URL = 'https://api.resend.com'
_DEFAULT_FROM = 'Baby in Need <onboarding@resend.dev>'


class SendResult(NamedTuple):
    success: bool
    email_id: Optional[str] = None
    error: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {'success': self.success, 'id': self.email_id, 'error': self.error}


class EmailNotifier:
    """Send registry email through Resend.

    Args:
        config: The application configuration dict.
        timeout: HTTP request timeout in seconds.
    """

    def __init__(self, config: Dict[str, Any], timeout: int = _DEFAULT_TIMEOUT) -> None:
        self._cfg     = config or {}
        self._timeout = timeout

    # ------------------------------------------------------------------
    # Public interface
    # ------------------------------------------------------------------

    @property
    def configured(self) -> bool:
        """``True`` when an API key is available."""
        return bool(self._get('resend_api_key'))

    @property
    def sender(self) -> str:
        return self._get('notify_from') or _DEFAULT_FROM

    @property
    def registry_name(self) -> str:
        return self._get('registry_name') or 'Baby in Need'

    def send(self, to: Union[str, Sequence[str]], subject: str, text: str,
             html: Optional[str] = None) -> SendResult:
        """Send a single message.

        Args:
            to:      One address or a list of addresses.
            subject: Subject line.
            text:    Plain-text body.
            html:    Optional HTML body.

        Returns:
            A :class:`SendResult`; ``success`` is ``True`` only on a 2xx
            response from the provider.
        """
        api_key = self._get('resend_api_key')
        if not api_key:
            logger.warning("Email not sent to %s: no Resend API key configured", to)
            return SendResult(False, error='Email provider not configured')

        recipients: List[str] = [to] if isinstance(to, str) else list(to)
        payload: Dict[str, Any] = {
            'from':    self.sender,
            'to':      recipients,
            'subject': subject,
            'text':    text,
        }
        if html:
            payload['html'] = html

        try:
            resp = requests.post(
                f"{self._api_url()}/emails",
                json=payload,
                headers=self._headers(api_key),
                timeout=self._timeout,
            )
            resp.raise_for_status()
        except requests.RequestException as exc:
            message = self._error_message(exc)
            logger.warning("Email delivery to %s failed: %s", recipients, message)
            return SendResult(False, error=message)

        email_id = None
        try:
            email_id = (resp.json() or {}).get('id')
        except ValueError:
            pass
        logger.info("Email '%s' sent to %s (id %s)", subject, recipients, email_id)
        return SendResult(True, email_id=email_id)

    def send_donor_confirmation(self, email: str, item_name: str) -> SendResult:
        """Confirm a reservation of *item_name* to the donor at *email*."""
        tpl = email_templates.donor_confirmation(item_name, self.registry_name)
        return self.send(email, tpl.subject, tpl.text, tpl.html)

    def send_owner_notification(self, recipients: Sequence[str], item_name: str,
                                claimed_at: Optional[datetime] = None) -> SendResult:
        """Tell the registry owners that *item_name* was reserved."""
        tpl = email_templates.owner_notification(item_name, self.registry_name, claimed_at)
        return self.send(list(recipients), tpl.subject, tpl.text, tpl.html)

    def list_domains(self) -> Tuple[bool, int, Optional[str]]:
        """Query the provider's verified domains.

        Used as an API-key health check.

        Returns:
            ``(ok, domain_count, error)``.
        """
        api_key = self._get('resend_api_key')
        if not api_key:
            return False, 0, 'Email provider not configured'
        try:
            resp = requests.get(
                f"{self._api_url()}/domains",
                headers=self._headers(api_key),
                timeout=self._timeout,
            )
            resp.raise_for_status()
            data = resp.json() or {}
        except (requests.RequestException, ValueError) as exc:
            message = self._error_message(exc)
            logger.warning("Resend domain lookup failed: %s", message)
            return False, 0, message
        domains = data.get('data') if isinstance(data, dict) else None
        return True, len(domains) if isinstance(domains, list) else 0, None

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _get(self, key: str) -> str:
        """Return a config value, or empty string if absent / placeholder."""
        val = self._cfg.get(key, '')
        if not val or not isinstance(val, str):
            return ''
        if val.startswith('YOUR_') or not val.strip():
            return ''
        return val.strip()

    def _api_url(self) -> str:
        return (self._get('resend_api_url') or _DEFAULT_API_URL).rstrip('/')

    @staticmethod
    def _headers(api_key: str) -> Dict[str, str]:
        return {
            'Authorization': f'Bearer {api_key}',
            'Content-Type':  'application/json',
        }

    @staticmethod
    def _error_message(exc: Exception) -> str:
        """Prefer the provider's own error message over the HTTP reason."""
        response = getattr(exc, 'response', None)
        if response is not None:
            try:
                body = response.json()
                if isinstance(body, dict) and body.get('message'):
                    return str(body['message'])
            except ValueError:
                pass
        return str(exc) or exc.__class__.__name__
