from enum import Enum
from typing import Optional


class ConversationStatus(str, Enum):
    ACTIVE = "active"
    PENDING_PAYMENT = "pending_payment"
    PAYMENT_VERIFICATION = "payment_verification"


# active -> pending_payment is written by operators, never by the worker.
VALID_TRANSITIONS = {
    ConversationStatus.ACTIVE: [ConversationStatus.PENDING_PAYMENT],
    ConversationStatus.PENDING_PAYMENT: [ConversationStatus.PAYMENT_VERIFICATION],
    ConversationStatus.PAYMENT_VERIFICATION: [],
}


class InvalidTransitionError(Exception):
    def __init__(self, from_state: ConversationStatus, to_state: ConversationStatus):
        self.from_state = from_state
        self.to_state = to_state
        super().__init__(f"Invalid transition: {from_state.value} -> {to_state.value}")


def parse_status(value: Optional[str]) -> Optional[ConversationStatus]:
    """Map a stored status string to the enum. Unknown values give None."""
    if value is None:
        return None
    try:
        return ConversationStatus(value)
    except ValueError:
        return None


def can_transition(from_state: ConversationStatus, to_state: ConversationStatus) -> bool:
    """Check if transition is valid."""
    allowed = VALID_TRANSITIONS.get(from_state, [])
    return to_state in allowed


def transition(from_state: ConversationStatus, to_state: ConversationStatus) -> ConversationStatus:
    """Perform state transition. Raises InvalidTransitionError if not allowed."""
    if not can_transition(from_state, to_state):
        raise InvalidTransitionError(from_state, to_state)
    return to_state


def awaits_payment_proof(status: Optional[str]) -> bool:
    """True when an incoming image should be treated as a payment screenshot."""
    return parse_status(status) == ConversationStatus.PENDING_PAYMENT


def submit_payment_proof(current_state: ConversationStatus) -> ConversationStatus:
    """Payment screenshot received, hand over to operator verification."""
    return transition(current_state, ConversationStatus.PAYMENT_VERIFICATION)
