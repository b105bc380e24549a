"""Business logic for registry items."""
import logging
from typing import Dict, List, Optional

from ..errors import ValidationError
from .change_feed import ChangeFeed

_OPTIONAL_FIELDS = ('url', 'price', 'size', 'notes')


def _clean(value) -> Optional[str]:
    if value is None:
        return None
    value = str(value).strip()
    return value or None


class ItemService:
    """Lists, creates and deletes items, delegating persistence to the
    ``database`` module's helper functions.

    All methods accept a *db* SQLAlchemy session as the first argument so
    that callers (Flask route handlers) control the session lifecycle.
    Authorisation is the caller's job.

    Rules
    -----
    * ``name`` (or its alias ``item``) must be non-blank.
    * Optional fields are trimmed; blank strings are stored as ``NULL``.
    * Every successful mutation is published on the change feed.
    """

    def __init__(self, db_module, change_feed: Optional[ChangeFeed] = None) -> None:
        self._db = db_module
        self._feed = change_feed
        self._log = logging.getLogger('gift_registry.service.ItemService')

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def list(self, db) -> List[Dict]:
        """Return every item, newest first."""
        return [self._db.item_to_dict(i) for i in self._db.list_items(db)]

    def get(self, db, item_id: str) -> Optional[Dict]:
        item = self._db.get_item(db, item_id)
        return self._db.item_to_dict(item) if item else None

    def create(self, db, payload: Dict) -> Dict:
        """Insert a new item from a request payload.

        Raises:
            ValidationError: if no name was given.
        """
        payload = payload or {}
        name = _clean(payload.get('name')) or _clean(payload.get('item'))
        if not name:
            raise ValidationError('Bad Request: name is required')
        fields = {key: _clean(payload.get(key)) for key in _OPTIONAL_FIELDS}
        item = self._db.create_item(db, name, **fields)
        result = self._db.item_to_dict(item)
        self._publish('created', result['id'])
        return result

    def delete(self, db, item_id) -> bool:
        """Delete *item_id*.  Returns ``True`` if it existed.

        Raises:
            ValidationError: if no id was given.
        """
        item_id = _clean(item_id)
        if not item_id:
            raise ValidationError('Bad Request: id is required')
        removed = self._db.delete_item(db, item_id)
        if removed:
            self._publish('deleted', item_id)
        else:
            self._log.info("Delete of unknown item %s ignored", item_id)
        return removed

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _publish(self, change: str, item_id: str) -> None:
        if self._feed is not None:
            self._feed.publish('items', {'change': change, 'id': item_id})
