class LedgerServiceError(Exception):
    pass


class NotFoundError(LedgerServiceError):
    pass


class InvalidStateError(LedgerServiceError):
    pass


class InsufficientFundsError(LedgerServiceError):
    pass


class AlreadyExistsError(LedgerServiceError):
    pass


class ConfigurationError(LedgerServiceError):
    pass


class ConflictError(LedgerServiceError):
    """A document read by the transaction was changed by another commit. Safe to retry."""


class TransactionError(LedgerServiceError):
    pass
