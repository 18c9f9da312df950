"""
Consignment Workflows.

State machine for delivery notes.  The service checks every status change
against ``DELIVERY_NOTE_WORKFLOW`` before writing it.
"""

from ledger_kernel.domain.workflow import Guard, Transition, Workflow
from ledger_kernel.logging_config import get_logger

logger = get_logger("modules.consignment.workflows")


# -----------------------------------------------------------------------------
# Guards
# -----------------------------------------------------------------------------

NO_EXISTING_SETTLEMENT = Guard(
    name="no_existing_settlement",
    description="No settlement references the delivery note yet",
)

ALL_INVOICES_DELIVERED = Guard(
    name="all_invoices_delivered",
    description="Every sales invoice linked to the note is delivered",
)

logger.info(
    "consignment_workflow_guards_defined",
    extra={
        "guards": [
            NO_EXISTING_SETTLEMENT.name,
            ALL_INVOICES_DELIVERED.name,
        ],
    },
)


# -----------------------------------------------------------------------------
# Delivery Note Workflow
# -----------------------------------------------------------------------------

DELIVERY_NOTE_WORKFLOW = Workflow(
    name="delivery_note",
    description="Goods issued to a sales representative, then settled",
    initial_state="issued",
    states=(
        "issued",
        "settled",
        "returned",  # no transition leads here
    ),
    transitions=(
        Transition("issued", "settled", action="settle", guard=ALL_INVOICES_DELIVERED, moves_stock=True),
        Transition("settled", "issued", action="unsettle", moves_stock=True),
    ),
    terminal_states=("settled",),
)

logger.info(
    "delivery_note_workflow_registered",
    extra={
        "workflow_name": DELIVERY_NOTE_WORKFLOW.name,
        "state_count": len(DELIVERY_NOTE_WORKFLOW.states),
        "transition_count": len(DELIVERY_NOTE_WORKFLOW.transitions),
        "initial_state": DELIVERY_NOTE_WORKFLOW.initial_state,
    },
)
