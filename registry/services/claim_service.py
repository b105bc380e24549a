"""Business logic for claiming (reserving) a registry item.

A claim is a short saga of four steps run in order on the request thread:

  1. ``reserve``            conditional update of ``claimed_at``
                            (compensation: release the claim)
  2. ``resolve_recipients`` read the owners' address list
  3. ``confirm_donor``      email the donor (required)
  4. ``notify_owners``      email the owners (best-effort)

When a required step fails, the compensations of the completed steps run in
reverse order and the step's error propagates.  A failed best-effort step is
logged and recorded, nothing more.
"""
import logging
from datetime import datetime, timezone
from typing import Callable, Dict, List, Optional

from gift_registry import is_valid_email
from ..errors import ConflictError, NotificationError, StoreError, ValidationError
from .change_feed import ChangeFeed
from .recipient_service import RecipientService

logger = logging.getLogger('gift_registry.service.ClaimService')

PENDING = 'pending'
DONE = 'done'
FAILED = 'failed'
SKIPPED = 'skipped'
COMPENSATED = 'compensated'


class SagaStep:
    """One step of a saga.

    Args:
        name:       Step name used in logs and in :attr:`ClaimSaga.states`.
        action:     ``action(ctx)``; may return :data:`SKIPPED`.
        compensate: Optional ``compensate(ctx)`` undoing *action*.
        required:   When ``False`` a failure does not abort the saga.
    """

    def __init__(self, name: str, action: Callable,
                 compensate: Optional[Callable] = None,
                 required: bool = True) -> None:
        self.name = name
        self.action = action
        self.compensate = compensate
        self.required = required
        self.state = PENDING
        self.error: Optional[str] = None


class ClaimSaga:
    """Runs :class:`SagaStep` objects in order with reverse compensation."""

    def __init__(self, steps: List[SagaStep]) -> None:
        self.steps = steps

    @property
    def states(self) -> Dict[str, str]:
        return {step.name: step.state for step in self.steps}

    def run(self, ctx) -> None:
        completed: List[SagaStep] = []
        for step in self.steps:
            try:
                outcome = step.action(ctx)
            except Exception as exc:
                step.state = FAILED
                step.error = str(exc)
                if not step.required:
                    logger.warning("Optional step '%s' failed: %s", step.name, exc)
                    continue
                self._compensate(completed, ctx)
                raise
            step.state = SKIPPED if outcome == SKIPPED else DONE
            completed.append(step)

    @staticmethod
    def _compensate(completed: List[SagaStep], ctx) -> None:
        for step in reversed(completed):
            if step.compensate is None:
                continue
            try:
                step.compensate(ctx)
                step.state = COMPENSATED
            except Exception as exc:
                # Best-effort: a failed compensation is not retried.
                logger.error("Compensation for '%s' failed: %s", step.name, exc)


class ClaimContext:
    """Mutable state threaded through the claim saga."""

    def __init__(self, db, item_id: str, email: str) -> None:
        self.db = db
        self.item_id = item_id
        self.email = email
        self.claimed_at: Optional[datetime] = None
        self.item_name: Optional[str] = None
        self.recipients: List[str] = []
        self.email_sent = False
        self.email_id: Optional[str] = None
        self.owners_notified: Optional[bool] = None
        self.released = False


class ClaimResult:
    """Outcome of a successful claim."""

    def __init__(self, item_id: str, item: str, email_sent: bool,
                 owners_notified: Optional[bool], steps: Dict[str, str]) -> None:
        self.item_id = item_id
        self.item = item
        self.email_sent = email_sent
        self.owners_notified = owners_notified
        self.steps = steps

    def to_dict(self) -> Dict:
        return {
            'ok': True,
            'id': self.item_id,
            'item': self.item,
            'emailSent': self.email_sent,
            'ownersNotified': self.owners_notified,
        }


class ClaimService:
    """Reserves an item for a donor and sends the related email.

    Args:
        db_module:         The imported ``database`` module (or any object
                           exposing ``claim_item`` and ``release_claim``).
        notifier:          An :class:`email_notifier.EmailNotifier`.
        recipient_service: Resolves the owners' addresses.
        change_feed:       Optional feed notified on claim and release.
    """

    def __init__(self, db_module, notifier, recipient_service: RecipientService,
                 change_feed: Optional[ChangeFeed] = None) -> None:
        self._db = db_module
        self._notifier = notifier
        self._recipients = recipient_service
        self._feed = change_feed

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def claim(self, db, item_id, email) -> ClaimResult:
        """Claim *item_id* on behalf of *email*.

        Raises:
            ValidationError:   missing id or malformed email; nothing is written.
            ConflictError:     the item is already claimed or does not exist.
            StoreError:        the conditional update failed in the store.
            NotificationError: the donor confirmation could not be sent; the
                               claim has been released again.
        """
        item_id = str(item_id).strip() if item_id is not None else ''
        email = str(email).strip() if email is not None else ''
        if not item_id or not is_valid_email(email):
            raise ValidationError('Bad Request')

        ctx = ClaimContext(db, item_id, email)
        saga = ClaimSaga([
            SagaStep('reserve', self._reserve, compensate=self._release),
            SagaStep('resolve_recipients', self._resolve_recipients),
            SagaStep('confirm_donor', self._confirm_donor),
            SagaStep('notify_owners', self._notify_owners, required=False),
        ])
        saga.run(ctx)
        logger.info("Item %s (%s) claimed by %s", item_id, ctx.item_name, email)
        return ClaimResult(item_id, ctx.item_name, ctx.email_sent,
                           ctx.owners_notified, saga.states)

    # ------------------------------------------------------------------
    # Saga steps
    # ------------------------------------------------------------------

    def _reserve(self, ctx: ClaimContext) -> None:
        claimed_at = datetime.now(timezone.utc)
        item = self._db.claim_item(ctx.db, ctx.item_id, claimed_at)
        if item is None:
            logger.info("Claim on %s rejected: already claimed or unknown", ctx.item_id)
            raise ConflictError('Already claimed')
        ctx.claimed_at = claimed_at
        ctx.item_name = item.name
        self._publish('claimed', ctx.item_id)

    def _release(self, ctx: ClaimContext) -> None:
        try:
            ctx.released = self._db.release_claim(ctx.db, ctx.item_id, ctx.claimed_at)
        except StoreError as exc:
            logger.error("Could not release claim on %s: %s", ctx.item_id, exc)
            raise
        logger.warning("Claim on %s released (released=%s)", ctx.item_id, ctx.released)
        if ctx.released:
            self._publish('released', ctx.item_id)

    def _resolve_recipients(self, ctx: ClaimContext) -> None:
        ctx.recipients = self._recipients.resolve(ctx.db)

    def _confirm_donor(self, ctx: ClaimContext) -> None:
        result = self._notifier.send_donor_confirmation(ctx.email, ctx.item_name)
        if not result.success:
            raise NotificationError(
                f"Confirmation email could not be sent: {result.error or 'unknown error'}"
            )
        ctx.email_sent = True
        ctx.email_id = result.email_id

    def _notify_owners(self, ctx: ClaimContext) -> Optional[str]:
        if not ctx.recipients:
            return SKIPPED
        ctx.owners_notified = False
        result = self._notifier.send_owner_notification(
            ctx.recipients, ctx.item_name, ctx.claimed_at)
        ctx.owners_notified = result.success
        if not result.success:
            raise NotificationError(f"Owner notification failed: {result.error}")
        return None

    def _publish(self, change: str, item_id: str) -> None:
        if self._feed is not None:
            self._feed.publish('items', {'change': change, 'id': item_id})
