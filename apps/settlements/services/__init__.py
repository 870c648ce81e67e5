"""Services for settlement reconciliation and payouts."""

from .exceptions import (
    SettlementsServiceError,
    SettlementDataUnavailableError,
    SettlementNotFoundError,
    SettlementNotPersistedError,
    SettlementAlreadyProcessingError,
    SettlementStatusConflictError,
    SettlementVerificationError,
    SettlementWriteError,
)
from .fees import (
    calculate_errand_fee,
    calculate_commission_fee,
    CATALOG_PRICES,
    DELIVERY_FEES,
)
from .period_assignment import (
    Transaction,
    SettlementSnapshot,
    PlannedPeriod,
    DeferredTransaction,
    AssignmentResult,
    assign_periods,
    to_utc_date,
    COMMISSION,
    ERRAND,
)
from .loaders import (
    load_settlement_inputs,
    eligible_transactions,
)
from .procedures import (
    create_or_update_settlement,
    update_overdue_settlements,
    lock_accounts_with_overdue_settlements,
    unlock_accounts_with_paid_settlements,
    daily_settlement_account_check,
)
from .reconciliation import (
    ReconciliationResult,
    reconcile_settlements,
)
from .settlement_payment import (
    PaymentResult,
    find_settlement,
    mark_settlement_paid,
)

__all__ = [
    # Exceptions
    'SettlementsServiceError',
    'SettlementDataUnavailableError',
    'SettlementNotFoundError',
    'SettlementNotPersistedError',
    'SettlementAlreadyProcessingError',
    'SettlementStatusConflictError',
    'SettlementVerificationError',
    'SettlementWriteError',
    # Fees
    'calculate_errand_fee',
    'calculate_commission_fee',
    'CATALOG_PRICES',
    'DELIVERY_FEES',
    # Period Assignment
    'Transaction',
    'SettlementSnapshot',
    'PlannedPeriod',
    'DeferredTransaction',
    'AssignmentResult',
    'assign_periods',
    'to_utc_date',
    'COMMISSION',
    'ERRAND',
    # Loaders
    'load_settlement_inputs',
    'eligible_transactions',
    # Procedures
    'create_or_update_settlement',
    'update_overdue_settlements',
    'lock_accounts_with_overdue_settlements',
    'unlock_accounts_with_paid_settlements',
    'daily_settlement_account_check',
    # Reconciliation
    'ReconciliationResult',
    'reconcile_settlements',
    # Payment
    'PaymentResult',
    'find_settlement',
    'mark_settlement_paid',
]
