# Overview: Error taxonomy shared by the ledger, lending and approval services.

"""
Every error here is recoverable by the caller: routes turn them into JSON
responses and the UI re-fetches current state. None of them should crash the
process.

LedgerInconsistency is different in kind from the others. It means a stored
invariant would be broken (or already is), so it is logged at CRITICAL before
it propagates and is never repaired automatically.
"""


class LedgerError(Exception):
    """Base class for domain errors raised by agriledger services."""

    code = "ledger_error"
    http_status = 400

    def __init__(self, message: str, *, details: dict | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_dict(self) -> dict:
        body = {"error": self.code, "message": self.message}
        if self.details:
            body["details"] = self.details
        return body


class ValidationError(LedgerError):
    """400-level input problem."""

    code = "validation_error"
    http_status = 400


class NotFound(LedgerError):
    code = "not_found"
    http_status = 404


class InsufficientStock(LedgerError):
    """Quantity precondition failed. `shortages` lists the offending lines."""

    code = "insufficient_stock"
    http_status = 409

    def __init__(self, message: str, *, shortages: list[dict] | None = None):
        self.shortages = shortages or []
        super().__init__(message, details={"shortages": self.shortages} if self.shortages else None)


class AssetUnavailable(LedgerError):
    code = "asset_unavailable"
    http_status = 409


class NoOpenLoan(LedgerError):
    code = "no_open_loan"
    http_status = 409


class RequestClosed(LedgerError):
    code = "request_closed"
    http_status = 409


class LedgerInconsistency(LedgerError):
    code = "ledger_inconsistency"
    http_status = 409
