"""
Typed Exception Hierarchy for the Ledger Kernel.

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

All exceptions inherit from LedgerKernelError:

    LedgerKernelError (base)
    |
    +-- ValidationError
    |   +-- MissingFieldError
    |   +-- InvalidQuantityError
    |   +-- InvalidUnitError
    |
    +-- NotFoundError
    |   +-- RecordNotFoundError
    |
    +-- StateGuardError
    |   +-- AlreadySettledError
    |   +-- DuplicateSettlementError
    |   +-- PendingInvoicesError
    |   +-- DeliveryNoteLockedError
    |   +-- LinkedToInvoiceError
    |   +-- NoteQuantityExceededError
    |   +-- InsufficientStockError
    |   +-- InvalidTransitionError
    |
    +-- StoreFailureError
    |
    +-- MovementError
    |   +-- IrreversibleMovementError
    |
    +-- ConfigurationError

===============================================================================
ERROR CODES - QUICK REFERENCE
===============================================================================

Category        | Code                        | When Raised
----------------|-----------------------------|-----------------------------------------
Validation      | MISSING_FIELD               | Required field absent or blank
                | INVALID_QUANTITY            | Quantity/amount out of range
                | INVALID_UNIT                | Unit is neither smallest nor largest
----------------|-----------------------------|-----------------------------------------
Not found       | RECORD_NOT_FOUND            | Referenced id missing from the store
----------------|-----------------------------|-----------------------------------------
State guard     | ALREADY_SETTLED             | Settling a note that is not issued
                | DUPLICATE_SETTLEMENT        | Note already has a settlement
                | PENDING_INVOICES            | Linked invoices not yet delivered
                | DELIVERY_NOTE_LOCKED        | Editing/invoicing a settled note
                | LINKED_TO_INVOICE           | Note still referenced by invoices
                | NOTE_QUANTITY_EXCEEDED      | Invoice exceeds note availability
                | INSUFFICIENT_STOCK          | Note issues more than is in stock
                | INVALID_TRANSITION          | Status change not in the workflow
----------------|-----------------------------|-----------------------------------------
Store           | STORE_FAILURE               | Store reported success=False
----------------|-----------------------------|-----------------------------------------
Movement        | IRREVERSIBLE_MOVEMENT       | Inverse requested for a "set" movement
----------------|-----------------------------|-----------------------------------------
Config          | CONFIGURATION_ERROR         | Config file invalid or incomplete

State-guard errors are raised before any write, so they never leave a
partial mutation behind.  StoreFailureError aborts the multi-step operation
in progress; earlier steps stay written and the next recompute pass
tolerates them.
"""

from collections.abc import Sequence


class LedgerKernelError(Exception):
    """Base exception for all ledger kernel errors."""

    code: str = "LEDGER_KERNEL_ERROR"


# =============================================================================
# Validation
# =============================================================================


class ValidationError(LedgerKernelError):
    """Input rejected before any ledger call."""

    code: str = "VALIDATION_ERROR"


class MissingFieldError(ValidationError):
    """A required field is absent or blank."""

    code: str = "MISSING_FIELD"

    def __init__(self, field_name: str, document: str):
        self.field_name = field_name
        self.document = document
        super().__init__(f"{document}: '{field_name}' is required")


class InvalidQuantityError(ValidationError):
    """A quantity or amount is outside its permitted range."""

    code: str = "INVALID_QUANTITY"

    def __init__(self, field_name: str, value: object, reason: str):
        self.field_name = field_name
        self.value = value
        self.reason = reason
        super().__init__(f"Invalid {field_name} {value}: {reason}")


class InvalidUnitError(ValidationError):
    """Unit label is not one of the supported units."""

    code: str = "INVALID_UNIT"

    def __init__(self, unit: object):
        self.unit = unit
        super().__init__(f"Unknown unit {unit!r}; expected 'smallest' or 'largest'")


# =============================================================================
# Not found
# =============================================================================


class NotFoundError(LedgerKernelError):
    """Base for lookups that found nothing."""

    code: str = "NOT_FOUND"


class RecordNotFoundError(NotFoundError):
    """A record referenced by id does not exist."""

    code: str = "RECORD_NOT_FOUND"

    def __init__(self, table: str, record_id: str):
        self.table = table
        self.record_id = record_id
        super().__init__(f"{table} record not found: {record_id}")


# =============================================================================
# State guards
# =============================================================================


class StateGuardError(LedgerKernelError):
    """Operation refused by a document state guard."""

    code: str = "STATE_GUARD"


class AlreadySettledError(StateGuardError):
    """Delivery note is not in the issued state."""

    code: str = "ALREADY_SETTLED"

    def __init__(self, note_id: str, note_number: str, status: str):
        self.note_id = note_id
        self.note_number = note_number
        self.status = status
        super().__init__(
            f"Delivery note {note_number} is '{status}', settlement requires 'issued'"
        )


class DuplicateSettlementError(StateGuardError):
    """A settlement already references the delivery note."""

    code: str = "DUPLICATE_SETTLEMENT"

    def __init__(self, note_id: str, settlement_number: str):
        self.note_id = note_id
        self.settlement_number = settlement_number
        super().__init__(
            f"Delivery note {note_id} already settled by {settlement_number}"
        )


class PendingInvoicesError(StateGuardError):
    """Linked invoices have not all been delivered."""

    code: str = "PENDING_INVOICES"

    def __init__(self, note_id: str, invoice_numbers: Sequence[str]):
        self.note_id = note_id
        self.invoice_numbers = list(invoice_numbers)
        super().__init__(
            f"Delivery note {note_id} has undelivered invoices: "
            f"{', '.join(self.invoice_numbers)}"
        )


class DeliveryNoteLockedError(StateGuardError):
    """Delivery note is settled and can no longer change."""

    code: str = "DELIVERY_NOTE_LOCKED"

    def __init__(self, note_id: str, note_number: str, status: str):
        self.note_id = note_id
        self.note_number = note_number
        self.status = status
        super().__init__(f"Delivery note {note_number} is locked (status '{status}')")


class LinkedToInvoiceError(StateGuardError):
    """Delivery note is referenced by sales invoices."""

    code: str = "LINKED_TO_INVOICE"

    def __init__(self, note_id: str, invoice_numbers: Sequence[str]):
        self.note_id = note_id
        self.invoice_numbers = list(invoice_numbers)
        super().__init__(
            f"Delivery note {note_id} is linked to invoices: "
            f"{', '.join(self.invoice_numbers)}"
        )


class NoteQuantityExceededError(StateGuardError):
    """Invoice line exceeds what remains available on the delivery note."""

    code: str = "NOTE_QUANTITY_EXCEEDED"

    def __init__(self, note_id: str, product_id: str, unit: str, requested, available):
        self.note_id = note_id
        self.product_id = product_id
        self.unit = unit
        self.requested = requested
        self.available = available
        super().__init__(
            f"Delivery note {note_id} has {available} {unit} of product "
            f"{product_id} available, {requested} requested"
        )


class InsufficientStockError(StateGuardError):
    """Requested quantity is more than the product has in stock."""

    code: str = "INSUFFICIENT_STOCK"

    def __init__(self, product_id: str, requested, available):
        self.product_id = product_id
        self.requested = requested
        self.available = available
        super().__init__(
            f"Product {product_id}: requested {requested}, in stock {available}"
        )


class InvalidTransitionError(StateGuardError):
    """Status change is not declared by the document workflow."""

    code: str = "INVALID_TRANSITION"

    def __init__(self, workflow: str, from_state: str, action: str):
        self.workflow = workflow
        self.from_state = from_state
        self.action = action
        super().__init__(
            f"{workflow}: action '{action}' not allowed from '{from_state}'"
        )


# =============================================================================
# Store
# =============================================================================


class StoreFailureError(LedgerKernelError):
    """The record store reported success=False."""

    code: str = "STORE_FAILURE"

    def __init__(self, operation: str, table: str, record_id: str | None = None):
        self.operation = operation
        self.table = table
        self.record_id = record_id
        target = f"{table}/{record_id}" if record_id else table
        super().__init__(f"Record store {operation} failed on {target}")


# =============================================================================
# Movements
# =============================================================================


class MovementError(LedgerKernelError):
    """Base for stock movement errors."""

    code: str = "MOVEMENT_ERROR"


class IrreversibleMovementError(MovementError):
    """An absolute "set" movement has no inverse derivable from itself."""

    code: str = "IRREVERSIBLE_MOVEMENT"

    def __init__(self, kind: str):
        self.kind = kind
        super().__init__(f"Movement '{kind}' has no computable inverse")


# =============================================================================
# Configuration
# =============================================================================


class ConfigurationError(LedgerKernelError):
    """Configuration could not be loaded or is incomplete."""

    code: str = "CONFIGURATION_ERROR"

    def __init__(self, source: str, reason: str):
        self.source = source
        self.reason = reason
        super().__init__(f"Configuration error in {source}: {reason}")
