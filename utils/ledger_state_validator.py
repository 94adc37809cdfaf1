"""
Ledger State Transition Validators
==================================

Guards the two lifecycles the ledger enforces:
- Fund requests: pending -> approved | rejected, both terminal
- Positions: open -> closed, terminal

Transitions out of a terminal state (including repeating the same terminal
state) are rejected so an approval or close can never be applied twice.
"""

import logging
from enum import Enum
from typing import Dict, Set, Optional, Tuple

from models import FundRequestStatus, PositionStatus
from utils.exception_handler import NotFoundError

logger = logging.getLogger(__name__)


class StateTransitionError(NotFoundError):
    """Raised when an entity is not in a state that allows the requested transition"""
    error_code = "INVALID_TRANSITION"


class _TransitionValidator:
    ENTITY_NAME = "Entity"
    STATUS_ENUM: type = Enum
    VALID_TRANSITIONS: Dict[Enum, Set[Enum]] = {}

    @classmethod
    def _coerce(cls, status) -> Enum:
        return status if isinstance(status, cls.STATUS_ENUM) else cls.STATUS_ENUM(status)

    @classmethod
    def validate_transition(cls, from_status, to_status, entity_id: Optional[str] = None) -> Tuple[bool, str]:
        """
        Validate if a state transition is allowed.

        Returns:
            Tuple[bool, str]: (is_valid, reason)
        """
        from_status = cls._coerce(from_status)
        to_status = cls._coerce(to_status)
        ref = f"{cls.ENTITY_NAME} {entity_id}" if entity_id else cls.ENTITY_NAME

        valid_next_states = cls.VALID_TRANSITIONS.get(from_status, set())
        if to_status in valid_next_states:
            logger.debug(f"✅ VALID_TRANSITION: {ref} {from_status.value} -> {to_status.value}")
            return True, "Valid state transition"

        if cls.is_terminal_state(from_status):
            reason = f"{ref} is already {from_status.value}"
        else:
            reason = (
                f"Invalid transition: {from_status.value} -> {to_status.value}. "
                f"Valid transitions from {from_status.value}: {sorted(s.value for s in valid_next_states)}"
            )

        logger.warning(f"❌ INVALID_TRANSITION: {ref} {from_status.value} -> {to_status.value}")
        return False, reason

    @classmethod
    def ensure_transition(cls, from_status, to_status, entity_id: Optional[str] = None) -> None:
        """Raise StateTransitionError when the transition is not allowed"""
        is_valid, reason = cls.validate_transition(from_status, to_status, entity_id)
        if not is_valid:
            raise StateTransitionError(reason)

    @classmethod
    def get_valid_next_states(cls, current_status) -> Set[Enum]:
        return cls.VALID_TRANSITIONS.get(cls._coerce(current_status), set())

    @classmethod
    def is_terminal_state(cls, status) -> bool:
        return not cls.get_valid_next_states(status)


class FundRequestStateValidator(_TransitionValidator):
    """Deposit/withdrawal request lifecycle"""

    ENTITY_NAME = "Fund request"
    STATUS_ENUM = FundRequestStatus
    VALID_TRANSITIONS = {
        FundRequestStatus.PENDING: {
            FundRequestStatus.APPROVED,
            FundRequestStatus.REJECTED,
        },
        FundRequestStatus.APPROVED: set(),
        FundRequestStatus.REJECTED: set(),
    }


class PositionStateValidator(_TransitionValidator):
    """Trading position lifecycle"""

    ENTITY_NAME = "Position"
    STATUS_ENUM = PositionStatus
    VALID_TRANSITIONS = {
        PositionStatus.OPEN: {PositionStatus.CLOSED},
        PositionStatus.CLOSED: set(),
    }
