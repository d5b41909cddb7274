"""Decision state machine implementation.

Handles decision transitions with validation and capability checking. The
machine is purely in-memory; the ledger persists whatever state it returns.
"""

from datetime import datetime
from typing import Optional, Dict, Any, Iterable
from uuid import UUID
import uuid

from .states import (
    DecisionStatus,
    DecisionTransition,
    DECIDED_STATES,
    can_transition,
    get_transition_rule,
)
from .errors import InvalidStateError, UnauthorizedError, ValidationError


class DecisionStateMachine:
    """
    State machine for one member's decision on one assignment.

    Manages transitions between decision states with:
    - Validation against the transition table
    - Capability checking for votes (can_approve / can_reject)
    - Required reasons for revocation
    - An in-memory record of every transition performed
    """

    def __init__(
        self,
        decision_id: Optional[UUID],
        current_state: DecisionStatus,
        *,
        capabilities: Optional[Iterable[str]] = None,
    ):
        """
        Initialize the state machine.

        Args:
            decision_id: ID of the decision row (None before first flush)
            current_state: Current decision state
            capabilities: Capability flags held by the acting seat
        """
        self.decision_id = decision_id
        self._state = DecisionStatus(current_state)
        self.capabilities = set(capabilities or [])
        self._transition_history: list[Dict[str, Any]] = []

    @property
    def state(self) -> DecisionStatus:
        """Current state of the decision."""
        return self._state

    @property
    def is_decided(self) -> bool:
        return self._state in DECIDED_STATES

    def transition(
        self,
        transition: DecisionTransition,
        *,
        comment: Optional[str] = None,
        user_id: Optional[UUID] = None,
    ) -> DecisionStatus:
        """
        Perform a state transition.

        Args:
            transition: The transition to perform
            comment: Optional comment (required for revocation)
            user_id: ID of user performing the transition

        Returns:
            The new state after transition

        Raises:
            InvalidStateError: If the transition is invalid from the current state
            UnauthorizedError: If the seat lacks the required capability
            ValidationError: If a required reason is missing
        """
        if not can_transition(self._state, transition):
            if transition in (DecisionTransition.APPROVE, DecisionTransition.REJECT) and self.is_decided:
                message = f"Decision already recorded as {self._state.value}"
            else:
                message = f"Cannot perform {transition.value} from state {self._state.value}"
            raise InvalidStateError(
                message,
                from_state=self._state.value,
                transition=transition.value,
            )
        rule = get_transition_rule(self._state, transition)

        if rule.requires_capability and rule.requires_capability not in self.capabilities:
            raise UnauthorizedError(
                f"Member is not allowed to {transition.value}: requires {rule.requires_capability}",
                required_capability=rule.requires_capability,
            )

        if rule.requires_comment and not (comment and comment.strip()):
            raise ValidationError(
                f"Transition {transition.value} requires a reason",
                transition=transition.value,
            )

        from_state = self._state
        self._transition_history.append({
            "id": uuid.uuid4(),
            "decision_id": self.decision_id,
            "from_state": from_state.value,
            "to_state": rule.to_state.value,
            "transition": transition.value,
            "user_id": user_id,
            "comment": comment,
            "timestamp": datetime.utcnow(),
        })

        self._state = rule.to_state
        return self._state

    def get_history(self) -> list[Dict[str, Any]]:
        """Get the transitions performed through this machine."""
        return self._transition_history.copy()
