"""
Canonical workflow types (``ledger_kernel.domain.workflow``).

Responsibility
--------------
Pure value objects for document state machines, defined once and used by
the modules' ``workflows.py`` files.  ``Workflow.transition`` is the single
lookup the services use before changing a document's status.

Invariants enforced
-------------------
* Transitions reference only states in ``Workflow.states``.
* ``initial_state`` is a member of ``states``.
"""

from __future__ import annotations

from dataclasses import dataclass

from ledger_kernel.exceptions import InvalidTransitionError


@dataclass(frozen=True)
class Guard:
    """A condition that must be satisfied before a transition fires.

    Descriptive only: the owning service evaluates it.
    """
    name: str
    description: str


@dataclass(frozen=True)
class Transition:
    """A valid state transition.  ``moves_stock`` marks a Stock Ledger effect."""
    from_state: str
    to_state: str
    action: str
    guard: Guard | None = None
    moves_stock: bool = False


@dataclass(frozen=True)
class Workflow:
    """A state machine definition for a document lifecycle."""
    name: str
    description: str
    initial_state: str
    states: tuple[str, ...]
    transitions: tuple[Transition, ...]
    terminal_states: tuple[str, ...] = ()

    def __post_init__(self):
        if self.initial_state not in self.states:
            raise ValueError(f"{self.name}: initial state '{self.initial_state}' not in states")
        for t in self.transitions:
            if t.from_state not in self.states or t.to_state not in self.states:
                raise ValueError(
                    f"{self.name}: transition {t.action} references unknown state"
                )

    def transition(self, from_state: str, action: str) -> Transition:
        """Find the transition for ``action`` from ``from_state``.

        Raises:
            InvalidTransitionError: if the workflow declares no such transition.
        """
        for t in self.transitions:
            if t.from_state == from_state and t.action == action:
                return t
        raise InvalidTransitionError(self.name, from_state, action)

    def reachable(self, state: str) -> bool:
        """True when some transition leads into ``state``."""
        return state == self.initial_state or any(t.to_state == state for t in self.transitions)
