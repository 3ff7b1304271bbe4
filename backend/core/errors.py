"""Error taxonomy for ledger operations.

Every error carries the HTTP status it maps to and a short machine readable
code; the API layer turns them into JSON responses in one exception handler.
"""


class LedgerError(Exception):
    status_code = 400
    code = "ledger_error"

    def __init__(self, message: str = None):
        super().__init__(message or self.__class__.__doc__ or self.code)
        self.message = message or self.__class__.__doc__ or self.code


class ValidationError(LedgerError):
    """Invalid request"""
    status_code = 400
    code = "validation_error"


class BelowMinimumError(ValidationError):
    """Amount is below the minimum withdrawal"""
    code = "below_minimum"


class InsufficientBalanceError(ValidationError):
    """Insufficient balance"""
    code = "insufficient_balance"


class NotFoundError(LedgerError):
    """Not found"""
    status_code = 404
    code = "not_found"


class StateConflictError(LedgerError):
    """Withdrawal is not pending"""
    status_code = 409
    code = "not_pending"


class AuthorizationError(LedgerError):
    """Admin access required"""
    status_code = 403
    code = "forbidden"


class AuthenticationError(LedgerError):
    """Could not validate credentials"""
    status_code = 401
    code = "unauthorized"


class TransientCollaboratorError(LedgerError):
    """Service temporarily unavailable"""
    status_code = 503
    code = "unavailable"
