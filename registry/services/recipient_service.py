"""Business logic for the owner-notification recipient list."""
import logging
from typing import List

from gift_registry import normalize_email_list, parse_email_list
from ..errors import StoreError


class RecipientService:
    """Reads and writes the ``recipients`` config entry, delegating
    persistence to the ``database`` module's helper functions.

    The entry is stored as ``{"emails": "a@x.ch, b@y.ch"}``.  When it is
    missing or empty, :meth:`resolve` falls back to the deployment's default
    list (``RECIPIENTS_TO``).
    """

    def __init__(self, db_module, fallback: str = '') -> None:
        """
        Args:
            db_module: The imported ``database`` module (or any object that
                exposes ``get_config_value``, ``set_config_value`` and
                ``RECIPIENTS_KEY``).
            fallback:  Comma-separated default recipient list.
        """
        self._db = db_module
        self._fallback = parse_email_list(fallback)
        self._log = logging.getLogger('gift_registry.service.RecipientService')

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def get_configured(self, db) -> str:
        """Return the stored recipient string, or ``''`` when unset."""
        value = self._db.get_config_value(db, self._db.RECIPIENTS_KEY)
        if not isinstance(value, dict):
            return ''
        return str(value.get('emails') or '')

    def save(self, db, raw) -> str:
        """Normalise *raw* and upsert it as the recipient list.

        No syntactic validation happens here; a bad address surfaces as a
        failed owner notification later.

        Returns:
            The normalised string that was stored.
        """
        if raw is None:
            raw = ''
        elif isinstance(raw, (list, tuple)):
            raw = ','.join(str(e) for e in raw if e is not None)
        normalized = normalize_email_list(str(raw))
        self._db.set_config_value(db, self._db.RECIPIENTS_KEY, {'emails': normalized})
        self._log.info("Recipient list updated (%d address(es))",
                       len(parse_email_list(normalized)))
        return normalized

    def resolve(self, db) -> List[str]:
        """Return the configured recipients, or the fallback list.

        A store failure while reading is logged and treated like an empty
        configuration.
        """
        try:
            configured = parse_email_list(self.get_configured(db))
        except StoreError as exc:
            self._log.warning("Could not read recipients, using fallback: %s", exc)
            configured = []
        return configured or list(self._fallback)
