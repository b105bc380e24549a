"""Services package - expose all concrete services from one import."""
from .change_feed import ChangeFeed
from .recipient_service import RecipientService
from .item_service import ItemService
from .claim_service import ClaimService, ClaimResult, ClaimSaga, SagaStep
from .email_diagnostics_service import EmailDiagnosticsService

__all__ = [
    'ChangeFeed',
    'RecipientService',
    'ItemService',
    'ClaimService',
    'ClaimResult',
    'ClaimSaga',
    'SagaStep',
    'EmailDiagnosticsService',
]
