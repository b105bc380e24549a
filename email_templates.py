"""
Email templates for claim confirmations and owner notifications.

Each builder returns an :class:`EmailTemplate` with a subject, a plain-text
body and an HTML body.
"""

import html
from datetime import datetime, timezone
from typing import NamedTuple, Optional


class EmailTemplate(NamedTuple):
    subject: str
    text: str
    html: str


_PAGE = """<!DOCTYPE html>
<html>
<head>
  <meta charset="utf-8">
  <meta name="viewport" content="width=device-width, initial-scale=1.0">
  <title>{title}</title>
</head>
<body style="font-family: Arial, sans-serif; line-height: 1.6; color: #333; margin: 0; padding: 20px; background-color: #f4f4f4;">
  <div style="max-width: 600px; margin: 0 auto; background: white; border-radius: 10px; overflow: hidden;">
    <div style="background: {banner}; padding: 30px; text-align: center;">
      <h1 style="color: white; margin: 0; font-size: 28px;">{heading}</h1>
    </div>
    <div style="padding: 30px;">
{body}
    </div>
    <div style="background: #f8f9fa; padding: 20px; text-align: center; border-top: 1px solid #eee;">
      <p style="margin: 0; font-size: 12px; color: #666;">
        {registry} - Geschenke für werdende Eltern<br>
        Diese E-Mail wurde automatisch generiert
      </p>
    </div>
  </div>
</body>
</html>
"""


def donor_confirmation(item_name: str, registry_name: str = 'Baby in Need') -> EmailTemplate:
    """Confirmation sent to the person who reserved *item_name*."""
    safe_item = html.escape(item_name)
    body = (
        '      <p style="font-size: 16px;">Vielen Dank, dass du dich entschieden hast zu schenken!</p>\n'
        '      <div style="background: #f8f9fa; padding: 25px; border-radius: 8px; border-left: 4px solid #667eea;">\n'
        '        <h3 style="margin-top: 0; color: #2c5aa0;">Dein reserviertes Geschenk:</h3>\n'
        f'        <p style="font-size: 22px; font-weight: bold; color: #2c5aa0;">{safe_item}</p>\n'
        '      </div>\n'
        '      <p style="margin: 25px 0;">Falls du Fragen hast oder Änderungen benötigst, '
        'wende dich gerne an die werdenden Eltern.</p>\n'
        '      <p style="font-size: 16px;">Vielen Dank für deine Großzügigkeit!</p>'
    )
    return EmailTemplate(
        subject=f"Reservierung bestätigt – {registry_name}",
        text=f'Danke fürs Schenken! Du hast "{item_name}" reserviert.',
        html=_PAGE.format(
            title='Reservierung bestätigt',
            banner='linear-gradient(135deg, #667eea 0%, #764ba2 100%)',
            heading='Reservierung bestätigt!',
            body=body,
            registry=html.escape(registry_name),
        ),
    )


def owner_notification(item_name: str, registry_name: str = 'Baby in Need',
                       claimed_at: Optional[datetime] = None) -> EmailTemplate:
    """Notification sent to the registry owners when *item_name* is reserved.

    The donor's address is deliberately not included.
    """
    when = (claimed_at or datetime.now(timezone.utc)).strftime('%d.%m.%Y, %H:%M UTC')
    safe_item = html.escape(item_name)
    body = (
        '      <p style="font-size: 16px;">Soeben wurde ein neues Geschenk reserviert:</p>\n'
        '      <div style="background: #f8f9fa; padding: 25px; border-radius: 8px; border-left: 4px solid #28a745;">\n'
        '        <h3 style="margin-top: 0; color: #155724;">Reserviertes Geschenk:</h3>\n'
        f'        <p style="font-size: 22px; font-weight: bold; color: #155724;">{safe_item}</p>\n'
        '      </div>\n'
        f'      <p style="margin: 25px 0;"><strong>Reserviert am:</strong> {when}</p>'
    )
    return EmailTemplate(
        subject=f"Neues Geschenk reserviert – {registry_name}",
        text=f'Soeben wurde "{item_name}" reserviert.',
        html=_PAGE.format(
            title='Neues Geschenk reserviert',
            banner='linear-gradient(135deg, #28a745 0%, #20c997 100%)',
            heading='Neues Geschenk reserviert!',
            body=body,
            registry=html.escape(registry_name),
        ),
    )
