"""Domain-specific exceptions"""


class DomainException(Exception):
    """Base exception for domain layer"""

    pass


class InvalidTransactionDataError(DomainException):
    """Transaction data is malformed or invalid"""

    pass


class AccountNotFoundError(DomainException):
    """Referenced account does not exist"""

    pass


class ObligationNotFoundError(DomainException):
    """Referenced biller or installment does not exist"""

    pass


class ScheduleNotFoundError(DomainException):
    """Referenced payment schedule entry does not exist"""

    pass


class TransactionNotFoundError(DomainException):
    """Referenced transaction does not exist"""

    pass


class LedgerSyncError(DomainException):
    """
    Paired balance + schedule update did not complete.

    Financial data may be inconsistent; the caller decides whether to retry
    or alert.
    """

    def __init__(self, message: str, schedule_id: str | None = None, account_id: str | None = None):
        super().__init__(message)
        self.schedule_id = schedule_id
        self.account_id = account_id
