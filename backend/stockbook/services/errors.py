# Overview: Error taxonomy for the sale transaction path.

"""
Sale errors carry an HTTP status and a stable code so routes can tell
"stock problem - the user can fix the request" (4xx) apart from
"system problem - retry later" (5xx) without string matching.

Every error here is raised before the transaction commits; callers roll
back the whole unit of work.
"""

from __future__ import annotations


class SaleError(Exception):
    """Raised for sale operation errors."""
    status_code = 400
    code = "SALE_ERROR"
    retryable = False

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.details = details or {}

    def to_dict(self) -> dict:
        return {
            "error": str(self),
            "code": self.code,
            "details": {**self.details, "retryable": self.retryable},
        }


class InsufficientStock(SaleError):
    """Requested base units exceed what the lots for a SKU (or a pinned lot) hold."""
    code = "INSUFFICIENT_STOCK"

    def __init__(self, sku: str, requested: int, available: int, lot_id: int | None = None):
        where = f"lot {lot_id}" if lot_id is not None else f"SKU {sku}"
        super().__init__(
            f"Insufficient stock for {where}: requested {requested}, available {available}",
            details={
                "sku": sku,
                "requested": requested,
                "available": available,
                "lot_id": lot_id,
            },
        )
        self.sku = sku
        self.requested = requested
        self.available = available
        self.lot_id = lot_id


class InvalidLineItem(SaleError):
    """A line item was rejected before any allocation was attempted."""
    code = "INVALID_LINE_ITEM"

    def __init__(self, message: str, line_number: int | None = None, sku: str | None = None):
        details = {}
        if line_number is not None:
            details["line_number"] = line_number
        if sku is not None:
            details["sku"] = sku
        super().__init__(message, details=details)


class NumberingConflict(SaleError):
    """Invoice number assignment kept colliding with concurrent sales."""
    status_code = 500
    code = "NUMBERING_CONFLICT"
    retryable = True


class PersistenceFailure(SaleError):
    """Unexpected storage-layer error; the sale was rolled back in full."""
    status_code = 500
    code = "PERSISTENCE_FAILURE"
    retryable = True
