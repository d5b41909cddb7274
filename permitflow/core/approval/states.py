"""Member decision states and transitions.

State Machine Diagram:

    ┌──────────┐
    │ PENDING  │ ← Initial state (seat created on assignment)
    └────┬─────┘
         │
         ├─────────────────────┐
         │ approve             │ reject
    ┌────▼─────┐         ┌─────▼────┐
    │ APPROVED │         │ REJECTED │
    └────┬─────┘         └─────┬────┘
         │ revoke              │ revoke
         └──────────┬──────────┘
               ┌────▼─────┐
               │ REVOKED  │ (audit fields + revocation record)
               └────┬─────┘
                    │ reset
               back to PENDING

The application itself moves SUBMITTED → UNDER_REVIEW → APPROVED | REJECTED,
and only the final approver's decision reaches a terminal application status.
"""

from enum import Enum
from typing import Set, Dict, Optional, NamedTuple


class DecisionStatus(str, Enum):
    """States of a single member's decision on an assignment."""

    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"
    REVOKED = "revoked"


class DecisionTransition(str, Enum):
    """Actions that move a decision between states."""

    APPROVE = "approve"    # PENDING → APPROVED
    REJECT = "reject"      # PENDING → REJECTED
    REVOKE = "revoke"      # APPROVED/REJECTED → REVOKED
    RESET = "reset"        # REVOKED → PENDING


class ApplicationStatus(str, Enum):
    """Review lifecycle of a permit application."""

    SUBMITTED = "submitted"
    UNDER_REVIEW = "under_review"
    APPROVED = "approved"
    REJECTED = "rejected"


class MemberRole(str, Enum):
    REGULAR = "regular"
    FINAL_APPROVER = "final_approver"


class AvailabilityStatus(str, Enum):
    AVAILABLE = "available"
    UNAVAILABLE = "unavailable"
    LIMITED = "limited"


class IssueAssignmentType(str, Enum):
    """Who is responsible for resolving an issue."""

    COLLABORATIVE = "collaborative"    # any active seat in the group
    GROUP_MEMBER = "group_member"      # one specific seat
    SPECIFIC_USER = "specific_user"    # one user, member or not


class IssuePriority(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class CommentType(str, Enum):
    GENERAL = "general"
    APPROVAL = "approval"
    REJECTION = "rejection"
    ISSUE = "issue"
    RESOLUTION = "resolution"
    REVOCATION = "revocation"


# Capability flags on a group seat
CAN_APPROVE = "can_approve"
CAN_REJECT = "can_reject"


class TransitionRule(NamedTuple):
    """Defines a valid decision transition."""
    from_state: DecisionStatus
    to_state: DecisionStatus
    transition: DecisionTransition
    requires_capability: Optional[str] = None
    requires_comment: bool = False


TRANSITION_RULES: list[TransitionRule] = [
    # Member votes
    TransitionRule(DecisionStatus.PENDING, DecisionStatus.APPROVED, DecisionTransition.APPROVE, CAN_APPROVE),
    TransitionRule(DecisionStatus.PENDING, DecisionStatus.REJECTED, DecisionTransition.REJECT, CAN_REJECT),

    # Revocation always carries a reason
    TransitionRule(DecisionStatus.APPROVED, DecisionStatus.REVOKED, DecisionTransition.REVOKE,
                   requires_comment=True),
    TransitionRule(DecisionStatus.REJECTED, DecisionStatus.REVOKED, DecisionTransition.REVOKE,
                   requires_comment=True),

    # Revoked seats go back into the pool
    TransitionRule(DecisionStatus.REVOKED, DecisionStatus.PENDING, DecisionTransition.RESET),
]

VALID_TRANSITIONS: Dict[DecisionStatus, Set[DecisionTransition]] = {}
TRANSITION_TARGETS: Dict[tuple[DecisionStatus, DecisionTransition], TransitionRule] = {}

for rule in TRANSITION_RULES:
    if rule.from_state not in VALID_TRANSITIONS:
        VALID_TRANSITIONS[rule.from_state] = set()
    VALID_TRANSITIONS[rule.from_state].add(rule.transition)

    TRANSITION_TARGETS[(rule.from_state, rule.transition)] = rule


# Decisions that count as a vote
DECIDED_STATES: Set[DecisionStatus] = {
    DecisionStatus.APPROVED,
    DecisionStatus.REJECTED,
}

# Application statuses only the final approver can produce
TERMINAL_APPLICATION_STATUSES: Set[ApplicationStatus] = {
    ApplicationStatus.APPROVED,
    ApplicationStatus.REJECTED,
}

# Maps a final approver's vote onto the application outcome
FINAL_OUTCOMES: Dict[DecisionTransition, ApplicationStatus] = {
    DecisionTransition.APPROVE: ApplicationStatus.APPROVED,
    DecisionTransition.REJECT: ApplicationStatus.REJECTED,
}


def can_transition(from_state: DecisionStatus, transition: DecisionTransition) -> bool:
    """Check if a transition is valid from the given state."""
    valid = VALID_TRANSITIONS.get(from_state, set())
    return transition in valid


def get_transition_rule(from_state: DecisionStatus, transition: DecisionTransition) -> Optional[TransitionRule]:
    """Get the transition rule for a state/action combination."""
    return TRANSITION_TARGETS.get((from_state, transition))

