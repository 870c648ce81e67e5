"""Domain-specific exceptions for settlements services."""


class SettlementsServiceError(Exception):
    """Base exception for settlements services."""
    pass


class SettlementDataUnavailableError(SettlementsServiceError):
    """Raised when runners, transactions or settlements cannot be loaded."""
    pass


class SettlementNotFoundError(SettlementsServiceError):
    """Raised when no persisted settlement matches the requested period."""
    pass


class SettlementNotPersistedError(SettlementsServiceError):
    """Raised when an operation needs a settlement row that was never saved."""
    pass


class SettlementAlreadyProcessingError(SettlementsServiceError):
    """Raised when the same settlement is already being marked as paid."""
    pass


class SettlementStatusConflictError(SettlementsServiceError):
    """Raised when a conditional status update matched no row."""
    pass


class SettlementVerificationError(SettlementsServiceError):
    """Raised when a write succeeded but the re-read shows a different status."""
    pass


class SettlementWriteError(SettlementsServiceError):
    """Raised when a settlement write fails outright."""
    pass
