"""
Domain error taxonomy.

Every error carries a ``kind`` (stable, machine readable) and a human readable
message. The HTTP layer renders them as ``{"error": {"kind", "message"}}``
with the status code attached to the class.
"""
from typing import Optional


class InventoryError(Exception):
    kind = "InventoryError"
    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def to_dict(self) -> dict:
        return {"kind": self.kind, "message": self.message}


class InvalidInput(InventoryError):
    """Malformed, missing or out-of-range arguments."""
    kind = "InvalidInput"
    status_code = 400


class NotFound(InventoryError):
    kind = "NotFound"
    status_code = 404

    def __init__(self, resource: str = "Resource", identifier: Optional[object] = None):
        if identifier is None:
            message = f"{resource} not found"
        else:
            message = f"{resource} {identifier} not found"
        super().__init__(message)
        self.resource = resource
        self.identifier = identifier


class InvalidOperation(InventoryError):
    """Business rule violation, e.g. stock going below zero."""
    kind = "InvalidOperation"
    status_code = 422


class Conflict(InventoryError):
    kind = "Conflict"
    status_code = 409


class StorageFailure(InventoryError):
    """
    Transaction or commit failure. The message is always generic; the
    underlying driver error is logged where it happens, never returned.
    """
    kind = "StorageFailure"
    status_code = 500

    def __init__(self):
        super().__init__("storage operation failed")


class ReportTimeout(InventoryError):
    kind = "Timeout"
    status_code = 504

    def __init__(self, report_type: str, budget_seconds: float):
        super().__init__(
            f"{report_type} report exceeded its {budget_seconds:g}s execution budget"
        )
        self.report_type = report_type
        self.budget_seconds = budget_seconds


class ImmutableLedgerError(InvalidOperation):
    """Raised when a flush tries to modify or delete a ledger entry."""

    def __init__(self, entry_id: Optional[int], operation: str):
        super().__init__(f"Ledger entry {entry_id} is immutable and cannot be {operation}")
        self.entry_id = entry_id
        self.operation = operation
