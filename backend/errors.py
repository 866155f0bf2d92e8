# Domain errors - user-actionable refusals carry the HTTP status the API layer returns


class ExchangeError(Exception):
    """Base for refusals surfaced directly to the caller. Never written to the audit log."""
    http_status = 400

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class AuthError(ExchangeError):
    http_status = 401


class NotFoundError(ExchangeError):
    http_status = 404


class MissingInputError(ExchangeError):
    http_status = 422


class NotOptedInError(ExchangeError):
    http_status = 403


class InsufficientCreditsError(ExchangeError):
    http_status = 402


class ReportUnavailableError(ExchangeError):
    """Report exists but is not discoverable by the requesting clinic."""
    http_status = 403


class NoEligibleViewerError(ExchangeError):
    http_status = 409


class LedgerInvariantError(RuntimeError):
    """Programming error: a caller invoked the ledger without satisfying its preconditions."""
