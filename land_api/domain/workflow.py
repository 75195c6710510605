# SPDX-License-Identifier: Apache-2.0

"""
Decision rules for the land application state machine.

Pending is the only state with outgoing transitions. The guard and the write
are applied by the storage layer as one conditional update; this module only
decides what that update contains.
"""

from datetime import datetime
from typing import Any, Dict, Optional

from ..models.enums import ApplicationStatus, DecisionAction
from .errors import AlreadyResolved, InvalidDecision, MissingReason


ALLOWED_TRANSITIONS = {
    ApplicationStatus.PENDING: {ApplicationStatus.APPROVED, ApplicationStatus.REJECTED},
    ApplicationStatus.APPROVED: set(),
    ApplicationStatus.REJECTED: set(),
}


def can_transition(current: ApplicationStatus, target: ApplicationStatus) -> bool:
    """Check whether a status transition is allowed."""
    return ApplicationStatus(target) in ALLOWED_TRANSITIONS[ApplicationStatus(current)]


def parse_decision(value: Any) -> DecisionAction:
    """
    Map a requested status or action to a decision.

    Accepts the target status ("Approved"/"Rejected") used by the admin
    endpoint as well as the action names ("Approve"/"Reject").

    Raises:
        InvalidDecision: For anything else, including "Pending"
    """
    if isinstance(value, DecisionAction):
        return value
    text = str(value or "").strip()
    mapping = {
        ApplicationStatus.APPROVED.value: DecisionAction.APPROVE,
        ApplicationStatus.REJECTED.value: DecisionAction.REJECT,
        DecisionAction.APPROVE.value: DecisionAction.APPROVE,
        DecisionAction.REJECT.value: DecisionAction.REJECT,
    }
    if text not in mapping:
        raise InvalidDecision(text)
    return mapping[text]


def ensure_transition(current_status: str, action: DecisionAction) -> None:
    """Raise AlreadyResolved when the decision has no transition from the current status."""
    current = ApplicationStatus(current_status)
    if not can_transition(current, action.target_status):
        raise AlreadyResolved(current.value)


def normalize_reason(action: DecisionAction, reason: Optional[str]) -> Optional[str]:
    """
    Validate the rejection reason for a decision.

    Returns:
        The trimmed reason for rejections, None for approvals

    Raises:
        MissingReason: If a rejection has no non-blank reason
    """
    if action != DecisionAction.REJECT:
        return None
    text = (reason or "").strip()
    if not text:
        raise MissingReason()
    return text


def decision_update(
    action: DecisionAction,
    actor: str,
    reason: Optional[str],
    decided_at: datetime,
    decision_id: str
) -> Dict[str, Any]:
    """Fields written by a committed decision."""
    return {
        "status": action.target_status.value,
        "decisionDate": decided_at,
        "decidedBy": actor,
        "rejectionReason": reason if action == DecisionAction.REJECT else None,
        "decisionId": decision_id,
        "updatedAt": decided_at,
    }


def rollback_update(reverted_at: datetime) -> Dict[str, Any]:
    """Update that returns a decided record to Pending."""
    return {
        "$set": {
            "status": ApplicationStatus.PENDING.value,
            "decisionDate": None,
            "decidedBy": None,
            "rejectionReason": None,
            "decisionId": None,
            "updatedAt": reverted_at,
        }
    }
