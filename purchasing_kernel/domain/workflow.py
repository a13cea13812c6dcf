"""
Purchase order lifecycle state machine (``purchasing_kernel.domain.workflow``).

Responsibility
--------------
Pure value objects for the order lifecycle: the states, the legal edges
between them, and the lookups services use to validate a change before it
is persisted.

Architecture position
---------------------
**Kernel domain layer** -- pure value objects.  ZERO I/O.  No imports
from ``db/``, ``services/``, ``selectors/``, or outer layers.

Invariants enforced
-------------------
* Transitions reference only states in ``Workflow.states``.
* ``initial_state`` is a member of ``states``.
* Terminal states have no outgoing transitions.
* ``derived`` transitions are never requested directly; only receipt
  reconciliation moves an order along them.
"""

from __future__ import annotations

from dataclasses import dataclass

from purchasing_kernel.exceptions import InvalidTransitionError


@dataclass(frozen=True)
class Transition:
    """A valid state transition in a workflow.

    Contract: frozen.  ``derived=True`` marks an edge that is computed from
    receipt coverage rather than requested by a caller.
    """
    from_state: str
    to_state: str
    action: str
    derived: bool = False


@dataclass(frozen=True)
class Workflow:
    """A state machine definition for a document lifecycle.

    Contract: frozen; ``transitions`` reference only states in ``states``.
    """
    name: str
    description: str
    initial_state: str
    states: tuple[str, ...]
    transitions: tuple[Transition, ...]
    terminal_states: tuple[str, ...] = ()

    def __post_init__(self):
        if self.initial_state not in self.states:
            raise ValueError(
                f"Workflow {self.name}: initial state {self.initial_state!r} "
                f"not in states"
            )
        for t in self.transitions:
            if t.from_state not in self.states or t.to_state not in self.states:
                raise ValueError(
                    f"Workflow {self.name}: transition {t.from_state} -> "
                    f"{t.to_state} references an unknown state"
                )
            if t.from_state in self.terminal_states:
                raise ValueError(
                    f"Workflow {self.name}: terminal state {t.from_state!r} "
                    f"has an outgoing transition"
                )

    def transition_for(self, from_state: str, to_state: str) -> Transition | None:
        for t in self.transitions:
            if t.from_state == from_state and t.to_state == to_state:
                return t
        return None

    def allowed_targets(self, from_state: str) -> frozenset[str]:
        return frozenset(
            t.to_state for t in self.transitions if t.from_state == from_state
        )

    def can_transition(self, from_state: str, to_state: str) -> bool:
        return self.transition_for(from_state, to_state) is not None

    def is_terminal(self, state: str) -> bool:
        return state in self.terminal_states


# -----------------------------------------------------------------------------
# Purchase Order Workflow
# -----------------------------------------------------------------------------

PURCHASE_ORDER_WORKFLOW = Workflow(
    name="purchase_order",
    description="Purchase order lifecycle",
    initial_state="draft",
    states=(
        "draft",
        "sent",
        "confirmed",
        "partially_received",
        "received",
        "cancelled",
    ),
    transitions=(
        Transition("draft", "sent", action="send"),
        Transition("sent", "confirmed", action="confirm"),
        Transition("sent", "cancelled", action="cancel"),
        Transition("confirmed", "partially_received", action="receive_partial", derived=True),
        Transition("confirmed", "received", action="receive_full", derived=True),
        Transition("confirmed", "cancelled", action="cancel"),
        Transition("partially_received", "received", action="receive_full", derived=True),
        Transition("partially_received", "cancelled", action="cancel"),
    ),
    terminal_states=("received", "cancelled"),
)

# Statuses against which goods may be received
RECEIVABLE_STATES: frozenset[str] = frozenset({"confirmed", "partially_received"})


def validate_transition(
    from_state: str,
    to_state: str,
    *,
    explicit: bool,
    workflow: Workflow = PURCHASE_ORDER_WORKFLOW,
) -> Transition:
    """Return the transition for ``from_state -> to_state`` or raise.

    Raises:
        InvalidTransitionError: the edge is not in the table, or an explicit
            request targets a derived-only edge.
    """
    transition = workflow.transition_for(from_state, to_state)
    if transition is None:
        raise InvalidTransitionError(from_state, to_state)
    if explicit and transition.derived:
        raise InvalidTransitionError(from_state, to_state)
    return transition
