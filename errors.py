"""Failure taxonomy for the ledger service.

Business-rule failures carry the HTTP status and the user-facing message the
blueprints render as ``{"ok": False, "error": message}``.
"""


class LedgerError(Exception):
    status_code = 500
    message = "server error"

    def __init__(self, message: str | None = None):
        if message:
            self.message = message
        super().__init__(self.message)


class BackendUnavailable(LedgerError):
    """Remote store unreachable or misconfigured. Recovered by the gateway."""

    status_code = 503
    message = "Remote store unavailable"


class StoreError(LedgerError):
    """Both backends failed for a single call."""

    message = "Storage unavailable"


class InsufficientFunds(LedgerError):
    status_code = 402
    message = "Insufficient balance"

    def __init__(self, wallet: str = "", needed: int = 0, available: int = 0):
        self.wallet = wallet
        self.needed = needed
        self.available = available
        super().__init__(f"Insufficient balance: need {needed}, have {available}")


class QuotaExceeded(LedgerError):
    status_code = 429
    message = "You have used today's orbs."


class InvalidInput(LedgerError):
    status_code = 400
    message = "Invalid input"


class PostNotFound(InvalidInput):
    status_code = 404
    message = "Post not found"


class InternalError(LedgerError):
    message = "server error"
